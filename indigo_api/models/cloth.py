"""Cloth (mini-game artwork) and score models."""

from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from indigo_api.services.ids import generate_id
from indigo_api.stores.postgres import Base, utcnow


class ClothStatus(str, Enum):
    DRAFT = "draft"
    IN_INVENTORY = "in_inventory"
    LISTED = "listed"


class Cloth(Base):
    """A dyed cloth.

    creator_id never changes; owner_id moves to the buyer on a market purchase.
    The id is client-generated, so it is not restricted to UUIDs.
    """

    __tablename__ = "cloths"

    id: Mapped[str] = mapped_column(String(100), primary_key=True, default=generate_id)
    creator_id: Mapped[str] = mapped_column(String(36), index=True)
    owner_id: Mapped[str] = mapped_column(String(36), index=True)

    name: Mapped[str | None] = mapped_column(String(100))
    layers_json: Mapped[str | None] = mapped_column(Text)
    status: Mapped[str] = mapped_column(String(20), default=ClothStatus.DRAFT.value, index=True)
    is_recent: Mapped[bool] = mapped_column(default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:
        return f"<Cloth {self.id} {self.status} owner={self.owner_id}>"


class ClothScore(Base):
    """One scoring run for a cloth. The newest row is the cloth's current score."""

    __tablename__ = "cloth_scores"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    cloth_id: Mapped[str] = mapped_column(ForeignKey("cloths.id", ondelete="CASCADE"), index=True)
    user_id: Mapped[str] = mapped_column(String(36), index=True)

    color_score: Mapped[int] = mapped_column(default=0)
    pattern_score: Mapped[int] = mapped_column(default=0)
    creativity_score: Mapped[int] = mapped_column(default=0)
    technique_score: Mapped[int] = mapped_column(default=0)
    total_score: Mapped[int] = mapped_column(default=0, index=True)
    grade: Mapped[str] = mapped_column(String(3))

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, index=True)
