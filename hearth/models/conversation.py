"""
Conversation turns. One row per user message or assistant reply,
ordered by sequence_no within a user. Rows are never updated.
"""

from sqlalchemy import Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .base import RecordBase

ROLE_USER = "user"
ROLE_ASSISTANT = "assistant"


class ConversationTurn(RecordBase):
    __tablename__ = "conversation_turns"
    __table_args__ = (
        UniqueConstraint("user_id", "sequence_no", name="uq_turn_user_sequence"),
    )

    user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    role: Mapped[str] = mapped_column(String, nullable=False)  # user, assistant
    text: Mapped[str] = mapped_column(Text, nullable=False, default="")
    sequence_no: Mapped[int] = mapped_column(Integer, nullable=False)

    def as_message(self) -> dict:
        """Chat-API shaped message for the model prompt."""
        return {"role": self.role, "content": self.text}

    def __repr__(self) -> str:
        return f"<ConversationTurn {self.user_id}#{self.sequence_no} {self.role}>"
