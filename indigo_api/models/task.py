"""Task templates, per-user progress and achievements."""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from indigo_api.services.ids import generate_id
from indigo_api.stores.postgres import Base, utcnow


class TaskTemplate(Base):
    """A task definition. conditions_json is checked by services.task_detection."""

    __tablename__ = "task_templates"

    id: Mapped[str] = mapped_column(String(100), primary_key=True)
    title: Mapped[str] = mapped_column(String(100))
    description: Mapped[str | None] = mapped_column(Text)
    category: Mapped[str] = mapped_column(String(20), index=True)  # tutorial, daily, challenge, achievement
    tier: Mapped[int] = mapped_column(default=1)

    conditions_json: Mapped[str | None] = mapped_column(Text)
    target: Mapped[int] = mapped_column(default=1)
    reward_exp: Mapped[int] = mapped_column(default=0)
    reward_currency: Mapped[int] = mapped_column(default=0)

    sort_order: Mapped[int] = mapped_column(default=0)
    is_active: Mapped[bool] = mapped_column(default=True)


class UserTaskProgress(Base):
    __tablename__ = "user_task_progress"
    __table_args__ = (UniqueConstraint("user_id", "task_id", name="uq_user_task_progress_user_task"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    user_id: Mapped[str] = mapped_column(String(36), index=True)
    task_id: Mapped[str] = mapped_column(ForeignKey("task_templates.id", ondelete="CASCADE"), index=True)

    progress: Mapped[int] = mapped_column(default=0)
    target: Mapped[int] = mapped_column(default=1)
    is_completed: Mapped[bool] = mapped_column(default=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    reward_claimed: Mapped[bool] = mapped_column(default=False)
    claimed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class UserAchievement(Base):
    __tablename__ = "user_achievements"
    __table_args__ = (UniqueConstraint("user_id", "achievement_id", name="uq_user_achievements_user_ach"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    user_id: Mapped[str] = mapped_column(String(36), index=True)
    achievement_id: Mapped[str] = mapped_column(String(100))

    progress: Mapped[int] = mapped_column(default=0)
    target: Mapped[int] = mapped_column(default=1)
    is_unlocked: Mapped[bool] = mapped_column(default=False)
    unlocked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
