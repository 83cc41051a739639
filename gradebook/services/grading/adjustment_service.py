import logging
import math
from typing import Optional, Union
from sqlalchemy.ext.asyncio import AsyncSession
from gradebook import models
from gradebook.core.exceptions import ArgumentError
from gradebook.database import utcnow
from gradebook.services.grading.grade_repository import GradeRepository

logger = logging.getLogger(__name__)


def effective_score(grade: Optional[models.GradeRecord]) -> Optional[float]:
    """
    Score used for aggregation.

    An override wins outright. Otherwise the base grade plus the points of
    every active adjustment, floored at 0; not clamped to the item's maximum.
    None while the record is ungraded.
    """
    if grade is None:
        return None
    if grade.is_overridden:
        return grade.override_grade
    if grade.base_grade is None:
        return None
    bonus = sum(a.points for a in grade.adjustments if a.is_active)
    return max(grade.base_grade + bonus, 0.0)


def _parse_type(value: Union[models.AdjustmentType, str]) -> models.AdjustmentType:
    try:
        return models.AdjustmentType(value)
    except ValueError:
        allowed = ", ".join(t.value for t in models.AdjustmentType)
        raise ArgumentError(f"Adjustment type must be one of: {allowed}")


class AdjustmentService:
    def __init__(self, repository: Optional[GradeRepository] = None):
        self.repository = repository or GradeRepository()

    async def add_adjustment(
        self,
        db: AsyncSession,
        grade_id: int,
        type: Union[models.AdjustmentType, str],
        points: float,
        reason: str,
        applied_by: Optional[int] = None
    ) -> models.GradeRecord:
        """Append an active adjustment to a grade record"""
        try:
            adjustment_type = _parse_type(type)
            if isinstance(points, bool) or not isinstance(points, (int, float)) or not math.isfinite(points):
                raise ArgumentError("Adjustment points must be a finite number")
            if not reason or not reason.strip():
                raise ArgumentError("Adjustment reason is required")

            grade = await self.repository.get_grade(db, grade_id)
            grade.adjustments.append(
                models.GradeAdjustment(
                    type=adjustment_type,
                    points=float(points),
                    reason=reason.strip(),
                    applied_by=applied_by,
                    applied_at=utcnow(),
                    is_active=True
                )
            )

            await db.commit()
            logger.info(f"Added {adjustment_type.value} adjustment of {points} to grade {grade_id}")
            return grade

        except Exception as e:
            await db.rollback()
            logger.error(f"Error adding adjustment to grade {grade_id}: {str(e)}")
            raise

    async def toggle_adjustment(self, db: AsyncSession, grade_id: int, adjustment_id: int) -> models.GradeRecord:
        """Flip the active flag of one adjustment"""
        try:
            grade = await self.repository.get_grade(db, grade_id)
            adjustment = self.repository.get_adjustment(grade, adjustment_id)
            adjustment.is_active = not adjustment.is_active

            await db.commit()
            logger.info(f"Adjustment {adjustment_id} on grade {grade_id} is now {'active' if adjustment.is_active else 'inactive'}")
            return grade

        except Exception as e:
            await db.rollback()
            logger.error(f"Error toggling adjustment {adjustment_id} on grade {grade_id}: {str(e)}")
            raise

    async def remove_adjustment(self, db: AsyncSession, grade_id: int, adjustment_id: int) -> models.GradeRecord:
        try:
            grade = await self.repository.get_grade(db, grade_id)
            adjustment = self.repository.get_adjustment(grade, adjustment_id)
            grade.adjustments.remove(adjustment)

            await db.commit()
            logger.info(f"Removed adjustment {adjustment_id} from grade {grade_id}")
            return grade

        except Exception as e:
            await db.rollback()
            logger.error(f"Error removing adjustment {adjustment_id} from grade {grade_id}: {str(e)}")
            raise
