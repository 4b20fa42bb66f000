"""Session state: message log, plans and the single-writer store."""

from .models import (
    SESSION_VERSION,
    CritiqueResult,
    CritiqueScores,
    FileAttachment,
    FunctionCall,
    GroundingSource,
    Message,
    Plan,
    PlanStep,
    ReflexionEntry,
    RepoRef,
    Role,
    SessionSnapshot,
    StepStatus,
)
from .store import SessionPersistence, SessionStore, StoreEvent, StoreEventType

__all__ = [
    "SESSION_VERSION",
    "CritiqueResult",
    "CritiqueScores",
    "FileAttachment",
    "FunctionCall",
    "GroundingSource",
    "Message",
    "Plan",
    "PlanStep",
    "ReflexionEntry",
    "RepoRef",
    "Role",
    "SessionPersistence",
    "SessionSnapshot",
    "SessionStore",
    "StepStatus",
    "StoreEvent",
    "StoreEventType",
]
