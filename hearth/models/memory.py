"""
User memory persistence.

Free-text facts about a user that are injected into every prompt.
Duplicates are allowed; facts are only removed in bulk by "forget".
"""

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import RecordBase

SOURCE_DIRECTIVE = "directive"
SOURCE_EXPLICIT = "explicit"


class MemoryFact(RecordBase):
    __tablename__ = "memory_facts"

    user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    source: Mapped[str] = mapped_column(String, nullable=False, default=SOURCE_DIRECTIVE)
