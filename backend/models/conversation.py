"""Conversation data models."""
from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class Exchange:
    """One human input / assistant output pair held in conversation memory."""
    query: str
    response: str
    timestamp: datetime = field(default_factory=datetime.now)
