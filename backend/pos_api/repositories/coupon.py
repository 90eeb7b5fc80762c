"""
Coupon Repository - Coupon lookup, atomic usage counting and redemptions.
"""

from decimal import Decimal

from sqlalchemy import Select, func, or_, select, update

from pos_api.models import Coupon, CouponRedemption
from shared.utils.money import to_money
from .base import BaseRepository


class CouponRepository(BaseRepository[Coupon]):
    """Repository for Coupon entities."""

    @property
    def model(self) -> type[Coupon]:
        return Coupon

    def _base_query(self, venue_id: int) -> Select:
        return select(Coupon).where(
            Coupon.venue_id == venue_id,
            Coupon.is_active.is_(True),
        )

    def find_by_code(self, venue_id: int, code: str) -> Coupon | None:
        """Codes are stored upper-case; the lookup normalizes its input."""
        normalized = code.strip().upper()
        if not normalized:
            return None
        return self._db.scalar(
            self._base_query(venue_id).where(Coupon.code == normalized)
        )

    def increment_usage(self, coupon_id: int, venue_id: int) -> bool:
        """
        Atomically consume one use.

        A single conditional UPDATE, so two terminals redeeming the last
        use cannot both succeed. Returns False when no row matched (limit
        reached or unknown coupon).
        """
        result = self._db.execute(
            update(Coupon)
            .where(
                Coupon.id == coupon_id,
                Coupon.venue_id == venue_id,
                or_(
                    Coupon.usage_limit.is_(None),
                    Coupon.usage_count < Coupon.usage_limit,
                ),
            )
            .values(usage_count=Coupon.usage_count + 1)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def count_customer_redemptions(self, coupon_id: int, customer_id: int) -> int:
        return self._db.scalar(
            select(func.count())
            .select_from(CouponRedemption)
            .where(
                CouponRedemption.coupon_id == coupon_id,
                CouponRedemption.customer_id == customer_id,
            )
        ) or 0

    def record_redemption(
        self,
        coupon_id: int,
        venue_id: int,
        order_id: int,
        discount_amount: Decimal,
        original_amount: Decimal,
        final_amount: Decimal,
        customer_id: int | None = None,
        order_ids: list[int] | None = None,
    ) -> CouponRedemption:
        redemption = CouponRedemption(
            coupon_id=coupon_id,
            venue_id=venue_id,
            order_id=order_id,
            order_ids=list(order_ids or [order_id]),
            customer_id=customer_id,
            discount_amount=to_money(discount_amount),
            original_amount=to_money(original_amount),
            final_amount=to_money(final_amount),
        )
        self._db.add(redemption)
        self._db.flush()
        return redemption
