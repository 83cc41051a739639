import logging
from typing import Optional
from gradebook.core.config import settings
from gradebook.services.aggregation.final_grade_service import FinalGradeService
from gradebook.services.grading.adjustment_service import AdjustmentService
from gradebook.services.grading.enrollment_checker import EnrollmentChecker
from gradebook.services.grading.grade_repository import GradeRepository
from gradebook.services.grading.grade_service import GradeService
from gradebook.services.hierarchy.gradebook_service import GradebookService
from gradebook.services.hierarchy.hierarchy_repository import HierarchyRepository
from gradebook.services.hierarchy.hierarchy_service import HierarchyService

logger = logging.getLogger(__name__)

class Services:
    def __init__(self):
        self.gradebook_service: Optional[GradebookService] = None
        self.hierarchy_service: Optional[HierarchyService] = None
        self.grade_service: Optional[GradeService] = None
        self.adjustment_service: Optional[AdjustmentService] = None
        self.final_grade_service: Optional[FinalGradeService] = None

    @property
    def initialized(self) -> bool:
        return self.final_grade_service is not None

services = Services()

def init_services(
    enrollment_checker: Optional[EnrollmentChecker] = None,
    target: Optional[Services] = None
) -> Services:
    """Wire the services over shared repositories"""
    target = target or services
    try:
        hierarchy_repository = HierarchyRepository()
        grade_repository = GradeRepository()

        target.gradebook_service = GradebookService(hierarchy_repository)
        target.hierarchy_service = HierarchyService(hierarchy_repository, settings.WEIGHT_TOLERANCE)
        target.grade_service = GradeService(grade_repository, hierarchy_repository, enrollment_checker)
        target.adjustment_service = AdjustmentService(grade_repository)
        target.final_grade_service = FinalGradeService(
            hierarchy_repository,
            grade_repository,
            enrollment_checker,
            settings.WEIGHT_TOLERANCE,
            settings.ROSTER_CONCURRENCY
        )
        if enrollment_checker is None:
            logger.warning("No enrollment checker configured; enrollments will not be verified")
        logger.info("Gradebook services initialized")
        return target

    except Exception as e:
        logger.error(f"Error initializing services: {e}")
        raise

def get_services() -> Services:
    if not services.initialized:
        raise RuntimeError("Services not initialized")
    return services
