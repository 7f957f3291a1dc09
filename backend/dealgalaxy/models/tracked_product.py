"""User-tracked products with target-price alerting."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, Index, Numeric, String, text
from sqlalchemy.orm import Mapped, mapped_column

from dealgalaxy.models.base import Base, TimestampMixin, UTCDateTime, UUIDPrimaryKeyMixin, utcnow


class TrackedProduct(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A product one owner is watching.

    States: tracking -> target_reached. ``alert_sent`` is a one-way latch:
    it flips to True the first time a refresh sees the price at or below
    the target and is never cleared by a later refresh.
    """

    __tablename__ = "tracked_products"

    owner_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    asin: Mapped[str] = mapped_column(String(10), nullable=False, index=True)

    title: Mapped[str] = mapped_column(String(500), nullable=False)
    current_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    target_price: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(12, 2), nullable=True, comment="Alert when price drops to or below this"
    )
    image_url: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)
    product_url: Mapped[str] = mapped_column(String(2000), nullable=False)
    affiliate_url: Mapped[str] = mapped_column(String(2000), nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    alert_sent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    last_checked: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    __table_args__ = (
        # At most one active row per (owner, product)
        Index(
            "uq_tracked_products_owner_asin_active",
            "owner_id",
            "asin",
            unique=True,
            postgresql_where=text("is_active = true"),
            sqlite_where=text("is_active = 1"),
        ),
        Index("idx_tracked_products_owner_active", "owner_id", "is_active"),
    )

    @property
    def target_reached(self) -> bool:
        return (
            self.target_price is not None
            and self.current_price is not None
            and self.current_price <= self.target_price
        )

    @property
    def state(self) -> str:
        if not self.is_active:
            return "inactive"
        return "target_reached" if self.alert_sent else "tracking"

    def observe_price(self, price: Decimal, observed_at: Optional[datetime] = None) -> bool:
        """Apply one successful price observation.

        Args:
            price: Freshly scraped price
            observed_at: Observation time (defaults to now, UTC)

        Returns:
            True if this observation newly triggered the target alert
        """
        self.current_price = price
        self.last_checked = observed_at or utcnow()

        if self.alert_sent or self.target_price is None:
            return False
        if price <= self.target_price:
            self.alert_sent = True
            return True
        return False

    def __repr__(self) -> str:
        return f"<TrackedProduct(id={self.id}, owner={self.owner_id}, asin={self.asin}, target={self.target_price})>"
