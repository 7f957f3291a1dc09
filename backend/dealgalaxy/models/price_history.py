"""Append-only price observations keyed by ASIN."""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from dealgalaxy.models.base import Base, UTCDateTime, UUIDPrimaryKeyMixin, utcnow


class PriceHistory(UUIDPrimaryKeyMixin, Base):
    """One row per successful price observation.

    Written by both the deal refresh and the tracking paths; rows are
    never updated or deleted by the pipeline.
    """

    __tablename__ = "price_history"

    asin: Mapped[str] = mapped_column(String(10), nullable=False, index=True)
    price: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, comment="Price at this point in time"
    )
    source: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="refresh",
        comment="Ingestion tag: 'tracking', 'refresh', 'deal_refresh'",
    )
    recorded_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
        default=utcnow,
        comment="When this price was recorded",
    )

    __table_args__ = (
        Index("idx_price_history_asin_recorded", "asin", "recorded_at"),
    )

    def __repr__(self) -> str:
        return f"<PriceHistory(asin={self.asin}, price={self.price}, source={self.source}, recorded_at={self.recorded_at})>"
