"""
Audit log of files the assistant wrote into the workspace.
"""

from typing import Optional

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import RecordBase


class WorkspaceFile(RecordBase):
    __tablename__ = "workspace_files"

    filename: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
