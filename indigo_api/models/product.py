"""Product model.

A catalogue item in the storefront. `original_price` drives the
discount display fields (see services.pricing).
"""

from datetime import datetime

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from indigo_api.services.ids import generate_id
from indigo_api.stores.postgres import Base, utcnow


class Product(Base):
    """Storefront product."""

    __tablename__ = "products"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    slug: Mapped[str | None] = mapped_column(String(200), index=True)

    name: Mapped[str] = mapped_column(String(200))
    description: Mapped[str | None] = mapped_column(Text)
    category: Mapped[str] = mapped_column(String(50), index=True)

    # Pricing
    price: Mapped[float] = mapped_column()
    original_price: Mapped[float | None] = mapped_column()

    # Media
    image_url: Mapped[str | None] = mapped_column(Text)

    # Stock
    stock: Mapped[int] = mapped_column(default=0)
    in_stock: Mapped[bool] = mapped_column(default=True)

    # Variants (JSON arrays of strings)
    colors_json: Mapped[str | None] = mapped_column(Text)
    sizes_json: Mapped[str | None] = mapped_column(Text)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
    )

    def __repr__(self) -> str:
        return f"<Product {self.id} {self.name!r} ¥{self.price:.2f}>"
