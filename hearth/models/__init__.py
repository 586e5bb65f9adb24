"""
All database models. Imported here so Base.metadata sees them for create_all().
"""

from .base import RecordBase
from .conversation import ConversationTurn
from .memory import MemoryFact
from .job import ScheduledJob
from .workspace_file import WorkspaceFile

__all__ = [
    "RecordBase",
    "ConversationTurn",
    "MemoryFact",
    "ScheduledJob",
    "WorkspaceFile",
]
