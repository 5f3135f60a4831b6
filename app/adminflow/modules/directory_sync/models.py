from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.adminflow.models import Base


class DirectorySyncRun(Base):
    __tablename__ = "directory_sync_runs"
    __table_args__ = (Index("idx_directory_sync_runs_directory_ran_at", "directory", "ran_at"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    ran_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    directory: Mapped[str] = mapped_column(String(32), nullable=False)  # github, slack
    demo_mode: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    fetch_failed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    added_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    removed_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    failed_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    duration_seconds: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    details_json: Mapped[str | None] = mapped_column(Text, nullable=True)  # {"added": [...], "removed": [...], "failures": [...]}
    message: Mapped[str | None] = mapped_column(Text, nullable=True)

    triggered_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
