"""
美容价格矩阵服务

美容的最终价格要等美容师看过动物才能确定：
1. 预订时按服务基础价格和价格规则计算预估总价
2. 美容师给每只动物的毛发状况打分（1-5），按 体型 × 评分 从矩阵中取价并记录在预订动物行上
3. 预订的所有动物都评分后，预订总价改为各动物报价之和

客户可以按体型查看价格区间；员工维护矩阵中每一格的价格和预计耗时。
"""

import logging
from typing import Any, Dict, List, Optional

from ..core.database import DatabaseManager, db_manager
from ..core.exceptions import AuthorizationError, NotFoundError, ValidationError
from ..models.grooming import (
    MAX_CONDITION_RATING,
    MIN_CONDITION_RATING,
    SIZE_ORDER,
    ConditionRatingResult,
    GroomingPriceTier,
)

logger = logging.getLogger(__name__)

GROOMING_SERVICE_NAME = "grooming"

_COLUMNS = ("id, size_category, condition_rating, label, estimated_minutes, price_cents, is_active, "
            "created_at, updated_at")

_SIZE_RANK_SQL = "CASE size_category " + " ".join(
    f"WHEN '{size}' THEN {rank}" for rank, size in enumerate(SIZE_ORDER)) + " END"


def _validate_size(size_category: str) -> str:
    if size_category not in SIZE_ORDER:
        raise ValidationError(
            f"Invalid size category. Must be one of: {', '.join(SIZE_ORDER)}", "size_category")
    return size_category


def _validate_rating(condition_rating: int) -> int:
    if not MIN_CONDITION_RATING <= condition_rating <= MAX_CONDITION_RATING:
        raise ValidationError(
            f"Condition rating must be between {MIN_CONDITION_RATING} and {MAX_CONDITION_RATING}",
            "condition_rating")
    return condition_rating


class GroomingPricingService:
    """美容价格矩阵"""

    def __init__(self, db: Optional[DatabaseManager] = None):
        self.db = db or db_manager

    # ------------------------------------------------------------------
    # 价格矩阵
    # ------------------------------------------------------------------
    def save_tier(self, size_category: str, condition_rating: int, price_cents: int,
                  estimated_minutes: int, label: Optional[str] = None,
                  is_active: bool = True) -> GroomingPriceTier:
        """新增或更新矩阵中的一格（键为 体型 + 评分）"""
        _validate_size(size_category)
        _validate_rating(condition_rating)
        if price_cents < 0:
            raise ValidationError("price_cents must not be negative", "price_cents")
        if estimated_minutes < 0:
            raise ValidationError("estimated_minutes must not be negative", "estimated_minutes")
        label = label or f"{size_category.upper()} / condition {condition_rating}"

        with self.db.transaction() as conn:
            existing = conn.execute(
                "SELECT id FROM grooming_price_tiers WHERE size_category = ? AND condition_rating = ?",
                [size_category, condition_rating],
            ).fetchone()
            if existing:
                tier_id = existing[0]
                conn.execute(
                    "UPDATE grooming_price_tiers SET label = ?, estimated_minutes = ?, price_cents = ?, "
                    "is_active = ?, updated_at = now() WHERE id = ?",
                    [label, estimated_minutes, price_cents, is_active, tier_id],
                )
            else:
                tier_id = conn.execute(
                    "INSERT INTO grooming_price_tiers(size_category, condition_rating, label, "
                    "estimated_minutes, price_cents, is_active) VALUES (?,?,?,?,?,?) RETURNING id",
                    [size_category, condition_rating, label, estimated_minutes, price_cents, is_active],
                ).fetchone()[0]

        logger.info("Saved grooming tier %s: %s/%s = %s cents", tier_id, size_category,
                    condition_rating, price_cents)
        return self.get_tier(tier_id)

    def get_tier(self, tier_id: int) -> GroomingPriceTier:
        row = self.db.fetch_dict(f"SELECT {_COLUMNS} FROM grooming_price_tiers WHERE id = ?", [tier_id])
        if not row:
            raise NotFoundError("Price tier", tier_id)
        return GroomingPriceTier(**row)

    def get_price(self, size_category: str, condition_rating: int) -> GroomingPriceTier:
        """某体型、某评分对应的价格档"""
        _validate_size(size_category)
        _validate_rating(condition_rating)
        row = self.db.fetch_dict(
            f"SELECT {_COLUMNS} FROM grooming_price_tiers WHERE size_category = ? AND condition_rating = ?",
            [size_category, condition_rating],
        )
        if not row:
            raise NotFoundError("Price tier", f"{size_category}/{condition_rating}")
        return GroomingPriceTier(**row)

    def get_price_range(self, size_category: str) -> Dict[str, Any]:
        """某体型启用中的价格区间，供客户预订前参考"""
        _validate_size(size_category)
        row = self.db.execute_one(
            "SELECT MIN(price_cents), MAX(price_cents) FROM grooming_price_tiers "
            "WHERE size_category = ? AND is_active",
            [size_category],
        )
        if row is None or row[0] is None:
            raise NotFoundError("Price tier", size_category)
        return {
            "size_category": size_category,
            "min_price_cents": int(row[0]),
            "max_price_cents": int(row[1]),
        }

    def get_price_matrix(self) -> List[GroomingPriceTier]:
        """完整矩阵，按体型从小到大、评分从低到高"""
        rows = self.db.fetch_dicts(
            f"SELECT {_COLUMNS} FROM grooming_price_tiers ORDER BY {_SIZE_RANK_SQL}, condition_rating")
        return [GroomingPriceTier(**row) for row in rows]

    def update_tier(self, tier_id: int, price_cents: Optional[int] = None,
                    estimated_minutes: Optional[int] = None,
                    is_active: Optional[bool] = None) -> GroomingPriceTier:
        """修改价格、预计耗时或启停状态"""
        updates: Dict[str, Any] = {}
        if price_cents is not None:
            if price_cents < 0:
                raise ValidationError("price_cents must not be negative", "price_cents")
            updates["price_cents"] = price_cents
        if estimated_minutes is not None:
            if estimated_minutes < 0:
                raise ValidationError("estimated_minutes must not be negative", "estimated_minutes")
            updates["estimated_minutes"] = estimated_minutes
        if is_active is not None:
            updates["is_active"] = is_active
        if not updates:
            raise ValidationError("Nothing to update")

        with self.db.transaction() as conn:
            self.get_tier(tier_id)
            assignments = ", ".join(f"{col} = ?" for col in updates)
            conn.execute(f"UPDATE grooming_price_tiers SET {assignments}, updated_at = now() WHERE id = ?",
                         [*updates.values(), tier_id])
        logger.info("Updated grooming tier %s: %s", tier_id, updates)
        return self.get_tier(tier_id)

    # ------------------------------------------------------------------
    # 毛发状况评分
    # ------------------------------------------------------------------
    def rate_condition(self, booking_id: int, animal_id: int, condition_rating: int,
                       staff_id: int) -> ConditionRatingResult:
        """
        美容师给预订中的一只动物评分并记录报价

        Raises:
            AuthorizationError: 操作人不是在职员工
            ValidationError: 评分越界、不是美容预订、动物未设置体型
            NotFoundError: 预订中没有该动物，或矩阵中没有对应价格档
        """
        _validate_rating(condition_rating)
        staff = self.db.execute_one("SELECT is_active FROM staff WHERE id = ?", [staff_id])
        if not staff or not staff[0]:
            raise AuthorizationError()

        with self.db.transaction() as conn:
            row = conn.execute(
                """
                SELECT st.name, a.size_category
                FROM booking_animals ba
                JOIN bookings b ON b.id = ba.booking_id
                JOIN service_types st ON st.id = b.service_type_id
                JOIN animals a ON a.id = ba.animal_id
                WHERE ba.booking_id = ? AND ba.animal_id = ?
                """,
                [booking_id, animal_id],
            ).fetchone()
            if not row:
                raise NotFoundError("Booking animal", f"{booking_id}/{animal_id}")

            service_name, size_category = row
            if service_name != GROOMING_SERVICE_NAME:
                raise ValidationError("Can only rate grooming bookings", "booking_id")
            if not size_category:
                raise ValidationError("Animal size category must be set before rating", "size_category")

            tier = self.get_price(size_category, condition_rating)
            conn.execute(
                "UPDATE booking_animals SET condition_rating = ?, quoted_price_cents = ? "
                "WHERE booking_id = ? AND animal_id = ?",
                [condition_rating, tier.price_cents, booking_id, animal_id],
            )

            quotes = [q[0] for q in conn.execute(
                "SELECT quoted_price_cents FROM booking_animals WHERE booking_id = ?", [booking_id]).fetchall()]
            all_rated = all(q is not None for q in quotes)
            total = sum(quotes) if all_rated else None
            if all_rated:
                conn.execute("UPDATE bookings SET total_cents = ?, updated_at = now() WHERE id = ?",
                             [total, booking_id])

        logger.info("Booking %s animal %s rated %s by staff %s: %s cents%s", booking_id, animal_id,
                    condition_rating, staff_id, tier.price_cents,
                    f", booking total now {total}" if all_rated else "")
        return ConditionRatingResult(
            booking_id=booking_id, animal_id=animal_id, condition_rating=condition_rating,
            quoted_price_cents=tier.price_cents, tier=tier, all_rated=all_rated,
            booking_total_cents=total,
        )
