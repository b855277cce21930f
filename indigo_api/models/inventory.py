"""Inventory slot model."""

from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from indigo_api.services.ids import generate_id
from indigo_api.stores.postgres import Base, utcnow


class SlotType(str, Enum):
    INVENTORY = "inventory"
    RECENT = "recent"


class UserInventory(Base):
    """A cloth held by a user, either in the inventory or in the rolling 'recent' list."""

    __tablename__ = "user_inventory"
    __table_args__ = (UniqueConstraint("user_id", "cloth_id", name="uq_user_inventory_user_cloth"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    user_id: Mapped[str] = mapped_column(String(36), index=True)
    cloth_id: Mapped[str] = mapped_column(ForeignKey("cloths.id", ondelete="CASCADE"), index=True)
    slot_type: Mapped[str] = mapped_column(String(20), default=SlotType.INVENTORY.value, index=True)

    added_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, index=True)
