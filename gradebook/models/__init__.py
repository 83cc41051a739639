from .gradebook import Gradebook
from .category import GradebookCategory
from .item import GradebookItem
from .grade import AdjustmentType, BaseGradeSource, GradeAdjustment, GradeRecord, GradeStatus

__all__ = [
    "Gradebook",
    "GradebookCategory",
    "GradebookItem",
    "AdjustmentType",
    "BaseGradeSource",
    "GradeStatus",
    "GradeAdjustment",
    "GradeRecord"
]
