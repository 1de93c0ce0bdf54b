from .chat import ChatMessage, ChatOpening
from .dog import DogSubject
from .media import InlineMedia, MediaReference, PendingUpload, RemoteMedia
from .report import EMOTIONS, URGENCY_LEVELS, Report, StoredReport

__all__ = [
    "ChatMessage", "ChatOpening",
    "DogSubject",
    "InlineMedia", "MediaReference", "PendingUpload", "RemoteMedia",
    "EMOTIONS", "URGENCY_LEVELS", "Report", "StoredReport",
]
