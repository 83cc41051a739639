import logging
from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from gradebook import models
from gradebook.core.exceptions import NotFoundError

logger = logging.getLogger(__name__)

class GradeRepository:
    async def get_grade(self, db: AsyncSession, grade_id: int) -> models.GradeRecord:
        """Grade record by id, adjustments loaded"""
        result = await db.execute(
            select(models.GradeRecord).where(models.GradeRecord.id == grade_id)
        )
        grade = result.scalar_one_or_none()
        if grade is None:
            raise NotFoundError(f"Grade with ID {grade_id} not found")
        return grade

    async def find_grade(
        self,
        db: AsyncSession,
        enrollment_id: int,
        item_id: int
    ) -> Optional[models.GradeRecord]:
        result = await db.execute(
            select(models.GradeRecord).where(
                models.GradeRecord.enrollment_id == enrollment_id,
                models.GradeRecord.item_id == item_id
            )
        )
        return result.scalar_one_or_none()

    async def list_for_enrollment(
        self,
        db: AsyncSession,
        enrollment_id: int,
        gradebook_id: int
    ) -> List[models.GradeRecord]:
        """Every grade record of one enrollment across a gradebook's items"""
        result = await db.execute(
            select(models.GradeRecord)
            .join(models.GradebookItem, models.GradebookItem.id == models.GradeRecord.item_id)
            .where(
                models.GradeRecord.enrollment_id == enrollment_id,
                models.GradebookItem.gradebook_id == gradebook_id
            )
            .order_by(models.GradeRecord.item_id)
        )
        return list(result.scalars().all())

    async def list_for_item(self, db: AsyncSession, item_id: int) -> List[models.GradeRecord]:
        result = await db.execute(
            select(models.GradeRecord)
            .where(models.GradeRecord.item_id == item_id)
            .order_by(models.GradeRecord.enrollment_id)
        )
        return list(result.scalars().all())

    def get_adjustment(self, grade: models.GradeRecord, adjustment_id: int) -> models.GradeAdjustment:
        for adjustment in grade.adjustments:
            if adjustment.id == adjustment_id:
                return adjustment
        raise NotFoundError(f"Adjustment with ID {adjustment_id} not found on grade {grade.id}")
