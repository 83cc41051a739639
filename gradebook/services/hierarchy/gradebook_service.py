import logging
from typing import Optional, Union
from pydantic import ValidationError
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from gradebook import models
from gradebook.core.exceptions import ArgumentError, DuplicateError, NotFoundError
from gradebook.schemas.hierarchy import (
    CategoryResponse,
    GradebookExport,
    GradebookResponse,
    GradebookStructure,
    GradebookUpdate,
    ItemResponse,
)
from gradebook.services.hierarchy.hierarchy_repository import HierarchyRepository
from gradebook.services.hierarchy.structure_builder import build_structure
from gradebook.utils.gradebook_tree import GradebookTree

logger = logging.getLogger(__name__)

class GradebookService:
    def __init__(self, repository: Optional[HierarchyRepository] = None):
        self.repository = repository or HierarchyRepository()

    async def create_gradebook(
        self,
        db: AsyncSession,
        course_id: int,
        name: Optional[str] = None,
        enabled: bool = True
    ) -> models.Gradebook:
        """Create the (single) gradebook of a course"""
        try:
            if await self.repository.find_gradebook_by_course(db, course_id):
                raise DuplicateError(f"Course {course_id} already has a gradebook")

            gradebook = models.Gradebook(course_id=course_id, name=name, enabled=bool(enabled), structure_version=0)
            db.add(gradebook)
            try:
                await db.flush()
            except IntegrityError:
                raise DuplicateError(f"Course {course_id} already has a gradebook")

            await db.commit()
            logger.info(f"Created gradebook {gradebook.id} for course {course_id}")
            return gradebook

        except Exception as e:
            await db.rollback()
            logger.error(f"Error creating gradebook for course {course_id}: {str(e)}")
            raise

    async def get_gradebook(self, db: AsyncSession, gradebook_id: int) -> models.Gradebook:
        return await self.repository.get_gradebook(db, gradebook_id)

    async def get_gradebook_by_course(self, db: AsyncSession, course_id: int) -> models.Gradebook:
        gradebook = await self.repository.find_gradebook_by_course(db, course_id)
        if gradebook is None:
            raise NotFoundError(f"Gradebook for course {course_id} not found")
        return gradebook

    async def update_gradebook(
        self,
        db: AsyncSession,
        gradebook_id: int,
        changes: Union[GradebookUpdate, dict]
    ) -> models.Gradebook:
        """Update gradebook metadata; the hierarchy and its version are untouched"""
        try:
            if isinstance(changes, dict):
                try:
                    changes = GradebookUpdate.model_validate(changes)
                except ValidationError as e:
                    raise ArgumentError(f"Malformed gradebook update: {e}")

            gradebook = await self.repository.get_gradebook(db, gradebook_id)
            fields = changes.model_fields_set

            if "name" in fields:
                gradebook.name = changes.name
            if "enabled" in fields:
                if changes.enabled is None:
                    raise ArgumentError("enabled must be true or false")
                gradebook.enabled = changes.enabled

            await db.commit()
            logger.info(f"Updated gradebook {gradebook_id}: {sorted(fields)}")
            return gradebook

        except Exception as e:
            await db.rollback()
            logger.error(f"Error updating gradebook {gradebook_id}: {str(e)}")
            raise

        return gradebook

    async def delete_gradebook(self, db: AsyncSession, gradebook_id: int) -> None:
        """Delete a gradebook with its categories, items, grades and adjustments"""
        try:
            gradebook = await self.repository.get_gradebook(db, gradebook_id, for_update=True)

            item_ids = select(models.GradebookItem.id).where(models.GradebookItem.gradebook_id == gradebook_id)
            grade_ids = select(models.GradeRecord.id).where(models.GradeRecord.item_id.in_(item_ids))
            await db.execute(delete(models.GradeAdjustment).where(models.GradeAdjustment.grade_id.in_(grade_ids)))
            await db.execute(delete(models.GradeRecord).where(models.GradeRecord.item_id.in_(item_ids)))
            await db.execute(delete(models.GradebookItem).where(models.GradebookItem.gradebook_id == gradebook_id))
            await db.execute(delete(models.GradebookCategory).where(models.GradebookCategory.gradebook_id == gradebook_id))
            await db.delete(gradebook)

            await db.commit()
            logger.info(f"Deleted gradebook {gradebook_id}")

        except Exception as e:
            await db.rollback()
            logger.error(f"Error deleting gradebook {gradebook_id}: {str(e)}")
            raise

    async def get_structure(self, db: AsyncSession, gradebook_id: int) -> GradebookStructure:
        """Setup view with adjusted and overall weights"""
        gradebook = await self.repository.get_gradebook(db, gradebook_id)
        tree = await self.repository.load_tree(db, gradebook_id)
        return build_structure(tree, gradebook.course_id, gradebook.structure_version)

    async def export_gradebook(self, db: AsyncSession, gradebook_id: int) -> GradebookExport:
        """Snapshot of a gradebook's rows and setup view; grades are not included"""
        gradebook = await self.repository.get_gradebook(db, gradebook_id)
        categories = await self.repository.get_categories(db, gradebook_id)
        items = await self.repository.get_items(db, gradebook_id)
        tree = GradebookTree.from_models(gradebook_id, categories, items)

        return GradebookExport(
            gradebook_id=gradebook.id,
            course_id=gradebook.course_id,
            gradebook=GradebookResponse.model_validate(gradebook),
            categories=[CategoryResponse.model_validate(c) for c in categories],
            items=[ItemResponse.model_validate(i) for i in items],
            gradebook_setup=build_structure(tree, gradebook.course_id, gradebook.structure_version)
        )

    async def export_gradebook_json(self, db: AsyncSession, gradebook_id: int, indent: Optional[int] = 2) -> str:
        export = await self.export_gradebook(db, gradebook_id)
        return export.model_dump_json(indent=indent)
