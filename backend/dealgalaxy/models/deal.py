"""Deal cache model: one normalized snapshot row per catalog product."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, Float, Index, Integer, Numeric, String, text
from sqlalchemy.orm import Mapped, mapped_column

from dealgalaxy.models.base import Base, TimestampMixin, UTCDateTime, UUIDPrimaryKeyMixin, utcnow


class DealCache(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Latest scraped snapshot of a product, keyed by its ASIN.

    Rows are inserted on the first successful scrape of an ASIN and
    overwritten in place afterwards. The pipeline never deletes rows;
    deactivation happens by clearing is_active from outside.
    """

    __tablename__ = "deals_cache"

    asin: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        unique=True,
        comment="Retailer product identifier",
    )

    # Content
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    image_url: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)
    product_url: Mapped[str] = mapped_column(String(2000), nullable=False)
    affiliate_url: Mapped[str] = mapped_column(String(2000), nullable=False)
    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)

    # Pricing
    price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    original_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    discount_percentage: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, comment="Whole-number discount (0-100)"
    )

    # Social proof and availability
    rating: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    review_count: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    availability: Mapped[str] = mapped_column(String(200), nullable=False, default="Unknown")
    prime_eligible: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    deal_type: Mapped[str] = mapped_column(String(30), nullable=False, default="deal")
    deal_expires_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    fetched_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=utcnow, comment="Last successful scrape"
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        Index("idx_deals_cache_active_fetched", "is_active", "fetched_at"),
        Index(
            "idx_deals_cache_discount_active",
            "discount_percentage",
            postgresql_where=text("is_active = true"),
        ),
    )

    def __repr__(self) -> str:
        return f"<DealCache(asin={self.asin}, title='{self.title[:50]}', price={self.price})>"
