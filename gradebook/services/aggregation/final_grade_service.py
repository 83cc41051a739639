import asyncio
import logging
from typing import Dict, Iterable, Optional
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from gradebook.core.config import settings
from gradebook.core.exceptions import NotFoundError
from gradebook.schemas.final_grade import FinalGradeResult
from gradebook.services.aggregation.aggregation_engine import AggregationEngine, scores_from_records
from gradebook.services.grading.enrollment_checker import EnrollmentChecker
from gradebook.services.grading.grade_repository import GradeRepository
from gradebook.services.hierarchy.hierarchy_repository import HierarchyRepository

logger = logging.getLogger(__name__)

class FinalGradeService:
    """Read-only: loads the hierarchy and an enrollment's grades, then aggregates from scratch"""

    def __init__(
        self,
        hierarchy_repository: Optional[HierarchyRepository] = None,
        grade_repository: Optional[GradeRepository] = None,
        enrollment_checker: Optional[EnrollmentChecker] = None,
        tolerance: Optional[float] = None,
        roster_concurrency: Optional[int] = None
    ):
        self.hierarchy_repository = hierarchy_repository or HierarchyRepository()
        self.grade_repository = grade_repository or GradeRepository()
        self.enrollment_checker = enrollment_checker
        self.engine = AggregationEngine(settings.WEIGHT_TOLERANCE if tolerance is None else tolerance)
        self.roster_concurrency = roster_concurrency or settings.ROSTER_CONCURRENCY

    async def compute_final_grade(
        self,
        db: AsyncSession,
        enrollment_id: int,
        gradebook_id: int
    ) -> FinalGradeResult:
        """Final percentage and breakdown of one enrollment"""
        try:
            gradebook = await self.hierarchy_repository.get_gradebook(db, gradebook_id)
            if self.enrollment_checker is not None and not await self.enrollment_checker(
                db, enrollment_id, gradebook.course_id
            ):
                raise NotFoundError(f"Enrollment {enrollment_id} not found in course {gradebook.course_id}")

            tree = await self.hierarchy_repository.load_tree(db, gradebook_id)
            grades = await self.grade_repository.list_for_enrollment(db, enrollment_id, gradebook_id)
            return self.engine.compute(tree, scores_from_records(grades), enrollment_id)

        except Exception as e:
            logger.error(f"Error computing final grade of enrollment {enrollment_id} in gradebook {gradebook_id}: {str(e)}")
            raise

    async def compute_roster_final_grades(
        self,
        session_maker: async_sessionmaker,
        enrollment_ids: Iterable[int],
        gradebook_id: int
    ) -> Dict[int, FinalGradeResult]:
        """Final grades of many enrollments, each on its own session, a bounded number at a time"""
        semaphore = asyncio.Semaphore(self.roster_concurrency)

        async def compute_one(enrollment_id: int) -> FinalGradeResult:
            async with semaphore:
                async with session_maker() as session:
                    return await self.compute_final_grade(session, enrollment_id, gradebook_id)

        enrollment_ids = list(dict.fromkeys(enrollment_ids))
        results = await asyncio.gather(*(compute_one(e) for e in enrollment_ids))
        logger.info(f"Computed {len(results)} final grade(s) for gradebook {gradebook_id}")
        return dict(zip(enrollment_ids, results))
