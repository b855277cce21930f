"""Player profile model (mini-game progression and wallet)."""

from datetime import datetime

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from indigo_api.stores.postgres import Base, utcnow


class PlayerProfile(Base):
    """Level, experience and currency for a user. Keyed by platform user id."""

    __tablename__ = "player_profiles"

    user_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    dye_house_name: Mapped[str] = mapped_column(String(50), default="无名染坊")

    level: Mapped[int] = mapped_column(default=1)
    exp: Mapped[int] = mapped_column(default=0)
    currency: Mapped[int] = mapped_column(default=100)

    total_score: Mapped[int] = mapped_column(default=0)
    highest_score: Mapped[int] = mapped_column(default=0)
    total_cloths_created: Mapped[int] = mapped_column(default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:
        return f"<PlayerProfile {self.user_id} lv{self.level} ¤{self.currency}>"
