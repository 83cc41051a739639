import logging
from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete, func, or_
from gradebook import models
from gradebook.core.exceptions import NotFoundError
from gradebook.utils.gradebook_tree import GradebookTree

logger = logging.getLogger(__name__)

class HierarchyRepository:
    async def get_gradebook(
        self,
        db: AsyncSession,
        gradebook_id: int,
        for_update: bool = False
    ) -> models.Gradebook:
        """Fetch a gradebook, optionally locking its row until the transaction ends"""
        stmt = select(models.Gradebook).where(models.Gradebook.id == gradebook_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await db.execute(stmt)
        gradebook = result.scalar_one_or_none()
        if gradebook is None:
            raise NotFoundError(f"Gradebook with ID {gradebook_id} not found")
        return gradebook

    async def find_gradebook_by_course(
        self,
        db: AsyncSession,
        course_id: int
    ) -> Optional[models.Gradebook]:
        result = await db.execute(
            select(models.Gradebook).where(models.Gradebook.course_id == course_id)
        )
        return result.scalar_one_or_none()

    async def get_categories(self, db: AsyncSession, gradebook_id: int) -> List[models.GradebookCategory]:
        result = await db.execute(
            select(models.GradebookCategory)
            .where(models.GradebookCategory.gradebook_id == gradebook_id)
            .order_by(models.GradebookCategory.sort_order, models.GradebookCategory.id)
        )
        return list(result.scalars().all())

    async def get_items(self, db: AsyncSession, gradebook_id: int) -> List[models.GradebookItem]:
        result = await db.execute(
            select(models.GradebookItem)
            .where(models.GradebookItem.gradebook_id == gradebook_id)
            .order_by(models.GradebookItem.sort_order, models.GradebookItem.id)
        )
        return list(result.scalars().all())

    async def get_item(self, db: AsyncSession, item_id: int) -> models.GradebookItem:
        item = await db.get(models.GradebookItem, item_id)
        if item is None:
            raise NotFoundError(f"Gradebook item with ID {item_id} not found")
        return item

    async def load_tree(self, db: AsyncSession, gradebook_id: int) -> GradebookTree:
        """Read a gradebook's categories and items into a plain tree"""
        categories = await self.get_categories(db, gradebook_id)
        items = await self.get_items(db, gradebook_id)
        return GradebookTree.from_models(gradebook_id, categories, items)

    async def count_grades_outside(
        self,
        db: AsyncSession,
        item_id: int,
        min_grade: float,
        max_grade: float
    ) -> int:
        """Number of recorded base grades of an item that fall outside [min_grade, max_grade]"""
        result = await db.execute(
            select(func.count(models.GradeRecord.id)).where(
                models.GradeRecord.item_id == item_id,
                models.GradeRecord.base_grade.is_not(None),
                or_(
                    models.GradeRecord.base_grade < min_grade,
                    models.GradeRecord.base_grade > max_grade
                )
            )
        )
        return result.scalar() or 0

    async def delete_item_grades(self, db: AsyncSession, item_ids: List[int]) -> None:
        """Remove the grade records (and their adjustments) of the given items"""
        if not item_ids:
            return
        grade_ids = select(models.GradeRecord.id).where(models.GradeRecord.item_id.in_(item_ids))
        await db.execute(
            delete(models.GradeAdjustment).where(models.GradeAdjustment.grade_id.in_(grade_ids))
        )
        await db.execute(
            delete(models.GradeRecord).where(models.GradeRecord.item_id.in_(item_ids))
        )
