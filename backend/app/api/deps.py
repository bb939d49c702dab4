"""FastAPI dependencies for the service components held on app.state."""

from fastapi import Request

from backend.app.config import Settings
from backend.app.docs.retriever import RetrievalEngine
from backend.app.quota.ledger import QuotaLedger
from backend.app.sessions.tracker import SessionTracker


def get_app_settings(request: Request) -> Settings:
    settings: Settings = request.app.state.settings
    return settings


def get_quota_ledger(request: Request) -> QuotaLedger:
    ledger: QuotaLedger = request.app.state.ledger
    return ledger


def get_retrieval_engine(request: Request) -> RetrievalEngine:
    engine: RetrievalEngine = request.app.state.retrieval
    return engine


def get_session_tracker(request: Request) -> SessionTracker:
    tracker: SessionTracker = request.app.state.tracker
    return tracker
