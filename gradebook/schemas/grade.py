from pydantic import BaseModel, field_validator
from typing import List, Optional, Union
from datetime import datetime
from gradebook.models.grade import AdjustmentType, BaseGradeSource, GradeStatus
from .base import TimeStampedBase

class SubmissionRef(BaseModel):
    """Opaque pointer to the external submission a grade came from"""
    type: str
    id: str

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Union[int, str]) -> str:
        return str(value)

class AdjustmentResponse(BaseModel):
    id: int
    type: AdjustmentType
    points: float
    reason: str
    applied_by: Optional[int] = None
    applied_at: datetime
    is_active: bool

    class Config:
        from_attributes = True

class GradeRecordResponse(TimeStampedBase):
    id: int
    enrollment_id: int
    item_id: int
    base_grade: Optional[float] = None
    base_grade_source: BaseGradeSource = BaseGradeSource.manual
    status: GradeStatus = GradeStatus.draft
    feedback: Optional[str] = None
    graded_by: Optional[int] = None
    graded_at: Optional[datetime] = None
    submission_ref: Optional[SubmissionRef] = None
    is_overridden: bool = False
    override_grade: Optional[float] = None
    override_reason: Optional[str] = None
    is_graded: bool
    adjustments: List[AdjustmentResponse] = []

class GradeRecordUpdate(BaseModel):
    """Fields of a grade record a caller may change; unset fields are left alone"""
    base_grade: Optional[float] = None
    feedback: Optional[str] = None
    graded_by: Optional[int] = None
    submission: Optional[SubmissionRef] = None
    status: Optional[GradeStatus] = None

class BulkGradeEntry(BaseModel):
    item_id: int
    base_grade: Optional[float] = None
    feedback: Optional[str] = None
    submission: Optional[SubmissionRef] = None
