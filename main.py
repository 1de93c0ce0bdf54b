"""Pawsight API application entry point."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv

load_dotenv()  # load .env before anything reads os.getenv()

from fastapi import FastAPI

from app.ai.analyzer import Analyzer, GeminiAnalyzer
from app.ai.assistant import Assistant, ClaudeAssistant
from app.api.routes import analyses_router, chat_router, health_router, reports_router
from app.media.upload import CloudinaryUploader
from app.services.attempt import AnalysisAttempt, AttemptRegistry
from app.services.chat_session import ChatSessionRegistry
from app.services.database import DATABASE_URL, create_tables
from app.services.kv_store import SqliteKeyValueStore
from app.services.report_store import ReportStore

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s  %(levelname)-8s  %(name)s — %(message)s",
)
logger = logging.getLogger(__name__)


def configure_state(
    app: FastAPI,
    store: ReportStore,
    analyzer: Analyzer,
    assistant: Assistant,
    uploader: Optional[CloudinaryUploader] = None,
    progress_interval: Optional[float] = None,
) -> None:
    """Wire the collaborators the routers read from ``app.state``."""
    uploader = uploader or CloudinaryUploader()

    def new_attempt() -> AnalysisAttempt:
        kwargs = {} if progress_interval is None else {"progress_interval": progress_interval}
        return AnalysisAttempt(analyzer=analyzer, store=store, uploader=uploader, **kwargs)

    app.state.report_store = store
    app.state.analyzer = analyzer
    app.state.uploader = uploader
    app.state.attempts = AttemptRegistry(new_attempt)
    app.state.chat_sessions = ChatSessionRegistry(assistant)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the local report database and wire the external backends."""
    await create_tables(DATABASE_URL)
    logger.info("Report store ready at %s", DATABASE_URL)

    analyzer = GeminiAnalyzer()
    if not analyzer.configured:
        logger.warning("GEMINI_API_KEY is not set; analyses will fail until it is")
    uploader = CloudinaryUploader()
    logger.info("Media transport: %s", "object storage upload" if uploader.configured else "inline")

    configure_state(
        app,
        store=ReportStore(SqliteKeyValueStore(DATABASE_URL)),
        analyzer=analyzer,
        assistant=ClaudeAssistant(),
        uploader=uploader,
    )

    yield

    await app.state.attempts.wait_idle()
    logger.info("Pawsight API stopped")


app = FastAPI(
    title="Pawsight API",
    description=(
        "Dog behavior and health insights from a short video or photo "
        "(Gemini analysis, Claude follow-up chat). Advisory only, not veterinary advice."
    ),
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(health_router)
app.include_router(analyses_router)
app.include_router(reports_router)
app.include_router(chat_router)
