from .analyzer import Analyzer, GeminiAnalyzer, parse_report
from .assistant import Assistant, ClaudeAssistant

__all__ = ["Analyzer", "GeminiAnalyzer", "parse_report", "Assistant", "ClaudeAssistant"]
