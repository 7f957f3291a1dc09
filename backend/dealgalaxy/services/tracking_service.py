"""Per-owner product tracking."""

from decimal import Decimal
from typing import List, Optional, Tuple
from uuid import UUID

import structlog
from sqlalchemy import and_, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from dealgalaxy.core.exceptions import (
    DuplicateTracking,
    InvalidRequestError,
    NotFoundError,
    UnauthorizedError,
)
from dealgalaxy.models.tracked_product import TrackedProduct
from dealgalaxy.scrapers.base import NormalizedDeal

logger = structlog.get_logger(__name__)

TRACKED_SORT_COLUMNS = {
    "created_at": TrackedProduct.created_at,
    "last_checked": TrackedProduct.last_checked,
    "current_price": TrackedProduct.current_price,
    "target_price": TrackedProduct.target_price,
    "title": TrackedProduct.title,
}
SORT_ORDERS = ("ASC", "DESC")
MAX_PAGE_SIZE = 100


def validate_target_price(target_price: Optional[Decimal]) -> None:
    if target_price is not None and target_price <= 0:
        raise InvalidRequestError("Target price must be positive")


class TrackingService:
    """Service for products an owner is tracking."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.logger = logger.bind(service="tracking_service")

    async def find_active(self, owner_id: str, asin: str) -> Optional[TrackedProduct]:
        result = await self.db.execute(
            select(TrackedProduct).where(
                TrackedProduct.owner_id == owner_id,
                TrackedProduct.asin == asin,
                TrackedProduct.is_active == True,  # noqa: E712
            )
        )
        return result.scalar_one_or_none()

    async def get(self, product_id: UUID, owner_id: str) -> TrackedProduct:
        """Load a tracked product, enforcing ownership.

        Raises:
            NotFoundError: If the id is unknown
            UnauthorizedError: If the product belongs to another owner
        """
        product = await self.db.get(TrackedProduct, product_id)
        if product is None:
            raise NotFoundError("TrackedProduct", str(product_id))
        if product.owner_id != owner_id:
            raise UnauthorizedError("TrackedProduct", str(product_id))
        return product

    async def create(
        self,
        owner_id: str,
        deal: NormalizedDeal,
        target_price: Optional[Decimal] = None,
    ) -> TrackedProduct:
        """Start tracking a scraped product for an owner.

        Args:
            owner_id: Owner identity
            deal: Normalized snapshot with a price
            target_price: Optional alert threshold

        Returns:
            The new TrackedProduct

        Raises:
            DuplicateTracking: If the owner already actively tracks this ASIN
        """
        validate_target_price(target_price)
        if await self.find_active(owner_id, deal.asin) is not None:
            raise DuplicateTracking(owner_id, deal.asin)

        product = TrackedProduct(
            owner_id=owner_id,
            asin=deal.asin,
            title=deal.title,
            current_price=deal.price,
            target_price=target_price,
            image_url=deal.image_url,
            product_url=deal.product_url,
            affiliate_url=deal.affiliate_url,
            is_active=True,
            alert_sent=False,
            last_checked=deal.fetched_at,
        )
        self.db.add(product)
        try:
            await self.db.commit()
        except IntegrityError:
            # Lost a race against a concurrent insert for the same pair
            await self.db.rollback()
            raise DuplicateTracking(owner_id, deal.asin)

        self.logger.info(
            "tracking_created",
            owner_id=owner_id,
            asin=deal.asin,
            target_price=str(target_price) if target_price is not None else None,
        )
        return product

    async def update(
        self,
        product_id: UUID,
        owner_id: str,
        target_price: Optional[Decimal] = None,
        is_active: Optional[bool] = None,
        clear_target: bool = False,
    ) -> TrackedProduct:
        """Change the target price or active flag of a tracked product.

        clear_target removes the threshold; it cannot be combined with a new
        target_price.
        """
        validate_target_price(target_price)
        if clear_target and target_price is not None:
            raise InvalidRequestError("Cannot set and clear the target price at once")
        product = await self.get(product_id, owner_id)
        asin = product.asin

        if clear_target:
            product.target_price = None
        elif target_price is not None:
            product.target_price = target_price
        if is_active is not None:
            product.is_active = is_active

        try:
            await self.db.commit()
        except IntegrityError:
            # Reactivating would collide with another active row for this ASIN
            await self.db.rollback()
            raise DuplicateTracking(owner_id, asin)

        self.logger.info("tracking_updated", product_id=str(product_id), owner_id=owner_id)
        return product

    async def delete(self, product_id: UUID, owner_id: str) -> None:
        """Delete a tracked product owned by owner_id."""
        product = await self.get(product_id, owner_id)
        await self.db.delete(product)
        await self.db.commit()
        self.logger.info("tracking_deleted", product_id=str(product_id), owner_id=owner_id)

    async def list_for_owner(
        self,
        owner_id: str,
        sort_by: str = "created_at",
        sort_order: str = "DESC",
        limit: int = 20,
        offset: int = 0,
    ) -> Tuple[List[TrackedProduct], int]:
        """Active tracked products of one owner, paginated."""
        if limit > MAX_PAGE_SIZE or limit < 1:
            raise InvalidRequestError(f"Limit must be between 1 and {MAX_PAGE_SIZE}")
        sort_column = TRACKED_SORT_COLUMNS.get(sort_by)
        order = sort_order.upper()
        if sort_column is None or order not in SORT_ORDERS:
            raise InvalidRequestError("Invalid sort parameters")

        where = and_(
            TrackedProduct.owner_id == owner_id,
            TrackedProduct.is_active == True,  # noqa: E712
        )
        ordering = sort_column.asc() if order == "ASC" else sort_column.desc()

        result = await self.db.execute(
            select(TrackedProduct).where(where).order_by(ordering).limit(limit).offset(offset)
        )
        products = list(result.scalars().all())
        total = await self.db.scalar(select(func.count(TrackedProduct.id)).where(where))
        return products, total or 0

    async def list_refresh_targets(
        self, owner_id: str, product_id: Optional[UUID] = None
    ) -> List[TrackedProduct]:
        """Products a tracking refresh should visit.

        With product_id, exactly that product (ownership enforced), or
        nothing if it is inactive; otherwise every active product of the owner.
        """
        if product_id is not None:
            product = await self.get(product_id, owner_id)
            return [product] if product.is_active else []

        result = await self.db.execute(
            select(TrackedProduct)
            .where(
                TrackedProduct.owner_id == owner_id,
                TrackedProduct.is_active == True,  # noqa: E712
            )
            .order_by(TrackedProduct.created_at.asc())
        )
        return list(result.scalars().all())

    async def list_active_owners(self) -> List[str]:
        """Owners with at least one active tracked product."""
        result = await self.db.execute(
            select(TrackedProduct.owner_id)
            .where(TrackedProduct.is_active == True)  # noqa: E712
            .distinct()
            .order_by(TrackedProduct.owner_id)
        )
        return list(result.scalars().all())

    async def record_observation(self, product: TrackedProduct, price: Decimal) -> bool:
        """Store a fresh price on a tracked product.

        Returns:
            True if the target alert fired for the first time
        """
        triggered = product.observe_price(price)
        await self.db.commit()
        if triggered:
            self.logger.info(
                "target_price_reached",
                product_id=str(product.id),
                owner_id=product.owner_id,
                asin=product.asin,
                price=str(price),
                target_price=str(product.target_price),
            )
        return triggered
