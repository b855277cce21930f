"""Shop, listing and market transaction models."""

from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from indigo_api.services.ids import generate_id
from indigo_api.stores.postgres import Base, utcnow


class ListingStatus(str, Enum):
    LISTED = "listed"
    SOLD = "sold"
    WITHDRAWN = "withdrawn"


class TransactionType(str, Enum):
    PLAYER_BUY = "player_buy"
    SYSTEM_BUY = "system_buy"


class UserShop(Base):
    """A player's in-game shop. Also carries the inventory capacity."""

    __tablename__ = "user_shops"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    user_id: Mapped[str] = mapped_column(String(36), unique=True, index=True)

    shop_name: Mapped[str] = mapped_column(String(50), default="我的蓝染坊")
    shop_level: Mapped[int] = mapped_column(default=1)
    max_inventory_size: Mapped[int] = mapped_column(default=20)
    max_listing_slots: Mapped[int] = mapped_column(default=5)
    theme: Mapped[str] = mapped_column(String(20), default="traditional")
    character_customization_json: Mapped[str | None] = mapped_column(Text)

    total_sales: Mapped[int] = mapped_column(default=0)
    total_revenue: Mapped[int] = mapped_column(default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class ShopListing(Base):
    """A cloth offered for sale. At most one listed listing per seller is featured."""

    __tablename__ = "shop_listings"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    seller_id: Mapped[str] = mapped_column(String(36), index=True)
    cloth_id: Mapped[str] = mapped_column(ForeignKey("cloths.id", ondelete="CASCADE"), index=True)
    buyer_id: Mapped[str | None] = mapped_column(String(36))

    price: Mapped[int] = mapped_column()
    base_price: Mapped[int] = mapped_column(default=0)
    status: Mapped[str] = mapped_column(String(20), default=ListingStatus.LISTED.value, index=True)
    is_featured: Mapped[bool] = mapped_column(default=False)

    listed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, index=True)
    sold_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    withdrawn_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    def __repr__(self) -> str:
        return f"<ShopListing {self.id} {self.status} ¤{self.price}>"


class MarketTransaction(Base):
    """A completed purchase. listing_id is a free-form string so system listings fit too."""

    __tablename__ = "market_transactions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    listing_id: Mapped[str | None] = mapped_column(String(100), index=True)
    cloth_id: Mapped[str | None] = mapped_column(ForeignKey("cloths.id", ondelete="SET NULL"))
    seller_id: Mapped[str | None] = mapped_column(String(36), index=True)
    buyer_id: Mapped[str] = mapped_column(String(36), index=True)

    price: Mapped[int] = mapped_column()
    transaction_type: Mapped[str] = mapped_column(String(20))

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, index=True)
