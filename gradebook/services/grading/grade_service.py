import logging
import math
from typing import Dict, List, Optional, Sequence, Union
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from gradebook import models
from gradebook.core.exceptions import ArgumentError, DuplicateError, NotFoundError
from gradebook.models.grade import BaseGradeSource, GradeStatus
from gradebook.database import utcnow
from gradebook.schemas.grade import BulkGradeEntry, GradeRecordUpdate, SubmissionRef
from gradebook.services.grading.enrollment_checker import EnrollmentChecker
from gradebook.services.grading.grade_repository import GradeRepository
from gradebook.services.hierarchy.hierarchy_repository import HierarchyRepository

logger = logging.getLogger(__name__)

SubmissionInput = Optional[Union[SubmissionRef, dict]]


def _to_number(value, field_name: str) -> float:
    if isinstance(value, bool):
        raise ArgumentError(f"{field_name} must be a number")
    try:
        value = float(value)
    except (TypeError, ValueError):
        raise ArgumentError(f"{field_name} must be a number")
    if not math.isfinite(value):
        raise ArgumentError(f"{field_name} must be a finite number")
    return value


def _to_submission(submission: SubmissionInput) -> Optional[SubmissionRef]:
    if submission is None or isinstance(submission, SubmissionRef):
        return submission
    try:
        return SubmissionRef.model_validate(submission)
    except ValidationError as e:
        raise ArgumentError(f"Malformed submission reference: {e}")


class GradeService:
    """One grade record per (enrollment, item), with the base grade kept inside the item's bounds"""

    def __init__(
        self,
        repository: Optional[GradeRepository] = None,
        hierarchy_repository: Optional[HierarchyRepository] = None,
        enrollment_checker: Optional[EnrollmentChecker] = None
    ):
        self.repository = repository or GradeRepository()
        self.hierarchy_repository = hierarchy_repository or HierarchyRepository()
        self.enrollment_checker = enrollment_checker

    # === validation ===

    def _check_grade(self, item: models.GradebookItem, base_grade) -> Optional[float]:
        if base_grade is None:
            return None
        base_grade = _to_number(base_grade, "Grade")
        if base_grade < item.min_grade or base_grade > item.max_grade:
            raise ArgumentError(
                f"Grade must be between {item.min_grade} and {item.max_grade}",
                error_code="grade_out_of_range",
                details={"item_id": item.id, "grade": base_grade}
            )
        return base_grade

    async def _check_enrollment(self, db: AsyncSession, enrollment_id: int, item: models.GradebookItem) -> None:
        if self.enrollment_checker is None:
            return
        gradebook = await self.hierarchy_repository.get_gradebook(db, item.gradebook_id)
        if not await self.enrollment_checker(db, enrollment_id, gradebook.course_id):
            raise NotFoundError(f"Enrollment {enrollment_id} not found in course {gradebook.course_id}")

    def _apply_submission(self, grade: models.GradeRecord, submission: Optional[SubmissionRef]) -> None:
        grade.submission_type = submission.type if submission else None
        grade.submission_id = submission.id if submission else None

    def _apply_base_grade(self, grade: models.GradeRecord, base_grade: Optional[float], from_submission: bool) -> None:
        grade.base_grade = base_grade
        grade.graded_at = utcnow() if base_grade is not None else None
        grade.base_grade_source = BaseGradeSource.submission if from_submission else BaseGradeSource.manual
        if base_grade is not None:
            # a returned record stays returned through a regrade
            if grade.status in (None, GradeStatus.draft):
                grade.status = GradeStatus.graded
        elif not grade.is_overridden:
            grade.status = GradeStatus.draft

    def _apply_status(self, grade: models.GradeRecord, status: GradeStatus) -> None:
        if status != GradeStatus.draft and not grade.is_graded:
            raise ArgumentError(
                f"Grade {grade.id} has no grade yet; it cannot be marked {status.value}",
                error_code="grade_not_graded"
            )
        grade.status = status

    async def _insert(
        self,
        db: AsyncSession,
        enrollment_id: int,
        item: models.GradebookItem,
        base_grade: Optional[float],
        feedback: Optional[str],
        graded_by: Optional[int],
        submission: Optional[SubmissionRef]
    ) -> models.GradeRecord:
        if await self.repository.find_grade(db, enrollment_id, item.id):
            raise DuplicateError(f"Grade already exists for enrollment {enrollment_id} and item {item.id}")

        grade = models.GradeRecord(
            enrollment_id=enrollment_id,
            item_id=item.id,
            feedback=feedback,
            graded_by=graded_by,
            status=GradeStatus.draft,
            is_overridden=False,
            adjustments=[]
        )
        self._apply_base_grade(grade, base_grade, submission is not None)
        self._apply_submission(grade, submission)
        db.add(grade)
        try:
            await db.flush()
        except IntegrityError:
            # lost the race against a concurrent insert for the same pair
            raise DuplicateError(f"Grade already exists for enrollment {enrollment_id} and item {item.id}")
        return grade

    # === store ===

    async def record_grade(
        self,
        db: AsyncSession,
        enrollment_id: int,
        item_id: int,
        base_grade: Optional[float] = None,
        feedback: Optional[str] = None,
        graded_by: Optional[int] = None,
        submission: SubmissionInput = None
    ) -> models.GradeRecord:
        """Create the grade record of an (enrollment, item) pair"""
        try:
            item = await self.hierarchy_repository.get_item(db, item_id)
            await self._check_enrollment(db, enrollment_id, item)
            grade = await self._insert(
                db,
                enrollment_id,
                item,
                self._check_grade(item, base_grade),
                feedback,
                graded_by,
                _to_submission(submission)
            )
            await db.commit()
            logger.info(f"Recorded grade {grade.id} for enrollment {enrollment_id} on item {item_id}")
            return grade

        except Exception as e:
            await db.rollback()
            logger.error(f"Error recording grade for enrollment {enrollment_id} on item {item_id}: {str(e)}")
            raise

    async def update_grade(
        self,
        db: AsyncSession,
        grade_id: int,
        changes: Union[GradeRecordUpdate, dict]
    ) -> models.GradeRecord:
        """Update the supplied fields of a grade record"""
        try:
            if isinstance(changes, dict):
                try:
                    changes = GradeRecordUpdate.model_validate(changes)
                except ValidationError as e:
                    raise ArgumentError(f"Malformed grade update: {e}")

            grade = await self.repository.get_grade(db, grade_id)
            fields = changes.model_fields_set

            if "base_grade" in fields:
                item = await self.hierarchy_repository.get_item(db, grade.item_id)
                self._apply_base_grade(
                    grade,
                    self._check_grade(item, changes.base_grade),
                    "submission" in fields and changes.submission is not None
                )
            if "feedback" in fields:
                grade.feedback = changes.feedback
            if "graded_by" in fields:
                grade.graded_by = changes.graded_by
            if "submission" in fields:
                self._apply_submission(grade, changes.submission)
            if "status" in fields:
                if changes.status is None:
                    raise ArgumentError("status must be draft, graded or returned")
                self._apply_status(grade, changes.status)

            await db.commit()
            logger.info(f"Updated grade {grade_id}: {sorted(fields)}")
            return grade

        except Exception as e:
            await db.rollback()
            logger.error(f"Error updating grade {grade_id}: {str(e)}")
            raise

    async def delete_grade(self, db: AsyncSession, grade_id: int) -> None:
        """Delete a grade record and its adjustments"""
        try:
            grade = await self.repository.get_grade(db, grade_id)
            await db.delete(grade)
            await db.commit()
            logger.info(f"Deleted grade {grade_id}")

        except Exception as e:
            await db.rollback()
            logger.error(f"Error deleting grade {grade_id}: {str(e)}")
            raise

    async def bulk_record_grades(
        self,
        db: AsyncSession,
        enrollment_id: int,
        entries: Sequence[Union[BulkGradeEntry, dict]],
        graded_by: Optional[int] = None
    ) -> List[models.GradeRecord]:
        """Create or update many grades of one enrollment; all or nothing"""
        try:
            try:
                entries = [
                    entry if isinstance(entry, BulkGradeEntry) else BulkGradeEntry.model_validate(entry)
                    for entry in entries
                ]
            except ValidationError as e:
                raise ArgumentError(f"Malformed bulk grade entry: {e}")

            results: List[models.GradeRecord] = []
            checked_gradebooks: Dict[int, bool] = {}
            for entry in entries:
                item = await self.hierarchy_repository.get_item(db, entry.item_id)
                if item.gradebook_id not in checked_gradebooks:
                    await self._check_enrollment(db, enrollment_id, item)
                    checked_gradebooks[item.gradebook_id] = True
                base_grade = self._check_grade(item, entry.base_grade)

                grade = await self.repository.find_grade(db, enrollment_id, item.id)
                if grade is None:
                    grade = await self._insert(
                        db, enrollment_id, item, base_grade, entry.feedback, graded_by, entry.submission
                    )
                else:
                    # entries only touch the fields they carry
                    if "base_grade" in entry.model_fields_set:
                        self._apply_base_grade(grade, base_grade, entry.submission is not None)
                    grade.graded_by = graded_by
                    if "feedback" in entry.model_fields_set:
                        grade.feedback = entry.feedback
                    if "submission" in entry.model_fields_set:
                        self._apply_submission(grade, entry.submission)
                    await db.flush()
                results.append(grade)

            await db.commit()
            logger.info(f"Bulk recorded {len(results)} grade(s) for enrollment {enrollment_id}")
            return results

        except Exception as e:
            await db.rollback()
            logger.error(f"Error bulk recording grades for enrollment {enrollment_id}: {str(e)}")
            raise

    # === override layer ===

    async def override_grade(
        self,
        db: AsyncSession,
        grade_id: int,
        override_grade: float,
        reason: Optional[str] = None,
        overridden_by: Optional[int] = None
    ) -> models.GradeRecord:
        """Replace the effective score of a record; base grade and adjustments are kept"""
        try:
            value = _to_number(override_grade, "Override grade")
            if value < 0:
                raise ArgumentError("Override grade must be non-negative")

            grade = await self.repository.get_grade(db, grade_id)
            grade.is_overridden = True
            grade.override_grade = value
            grade.override_reason = reason
            grade.overridden_by = overridden_by
            grade.overridden_at = utcnow()
            if grade.status == GradeStatus.draft:
                grade.status = GradeStatus.graded

            await db.commit()
            logger.info(f"Overrode grade {grade_id} with {value}")
            return grade

        except Exception as e:
            await db.rollback()
            logger.error(f"Error overriding grade {grade_id}: {str(e)}")
            raise

    async def clear_override(self, db: AsyncSession, grade_id: int) -> models.GradeRecord:
        try:
            grade = await self.repository.get_grade(db, grade_id)
            grade.is_overridden = False
            grade.override_grade = None
            grade.override_reason = None
            grade.overridden_by = None
            grade.overridden_at = None
            if grade.base_grade is None:
                grade.status = GradeStatus.draft

            await db.commit()
            logger.info(f"Cleared override on grade {grade_id}")
            return grade

        except Exception as e:
            await db.rollback()
            logger.error(f"Error clearing override on grade {grade_id}: {str(e)}")
            raise

    # === reads ===

    async def get_grade(self, db: AsyncSession, grade_id: int) -> models.GradeRecord:
        return await self.repository.get_grade(db, grade_id)

    async def find_grade(self, db: AsyncSession, enrollment_id: int, item_id: int) -> models.GradeRecord:
        grade = await self.repository.find_grade(db, enrollment_id, item_id)
        if grade is None:
            raise NotFoundError(f"Grade not found for enrollment {enrollment_id} and item {item_id}")
        return grade

    async def list_grades_for_enrollment(
        self,
        db: AsyncSession,
        enrollment_id: int,
        gradebook_id: int
    ) -> List[models.GradeRecord]:
        await self.hierarchy_repository.get_gradebook(db, gradebook_id)
        return await self.repository.list_for_enrollment(db, enrollment_id, gradebook_id)

    async def list_grades_for_item(self, db: AsyncSession, item_id: int) -> List[models.GradeRecord]:
        await self.hierarchy_repository.get_item(db, item_id)
        return await self.repository.list_for_item(db, item_id)
