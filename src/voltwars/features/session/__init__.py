"""Match session feature: service layer, schemas, and API router."""

from .router import create_session_routers
from .schemas import (
    CardPayload,
    CellPayload,
    CommentaryPayload,
    LogPayload,
    MatchPayload,
    SnapshotPayload,
    SummaryPayload,
    TeamPayload,
    TeamSummaryPayload,
    WirePayload,
)
from .service import SessionConfig, SessionManager

__all__ = [
    "CardPayload",
    "CellPayload",
    "CommentaryPayload",
    "LogPayload",
    "MatchPayload",
    "SessionConfig",
    "SessionManager",
    "SnapshotPayload",
    "SummaryPayload",
    "TeamPayload",
    "TeamSummaryPayload",
    "WirePayload",
    "create_session_routers",
]
