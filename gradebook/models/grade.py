from sqlalchemy import Column, Integer, String, Float, Boolean, DateTime, ForeignKey, Text, Enum, UniqueConstraint
from sqlalchemy.orm import relationship
from gradebook.database import Base, utcnow
import enum

class AdjustmentType(str, enum.Enum):
    bonus = "bonus"
    penalty = "penalty"
    curve = "curve"

class GradeStatus(str, enum.Enum):
    draft = "draft"
    graded = "graded"
    returned = "returned"

class BaseGradeSource(str, enum.Enum):
    submission = "submission"
    manual = "manual"

class GradeAdjustment(Base):
    __tablename__ = "grade_adjustments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    grade_id = Column(Integer, ForeignKey("grade_records.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(Enum(AdjustmentType), nullable=False)
    # signed; the sign decides the effect, not the type tag
    points = Column(Float, nullable=False)
    reason = Column(Text, nullable=False)
    applied_by = Column(Integer, nullable=True)
    applied_at = Column(DateTime(timezone=True), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)

    grade = relationship("GradeRecord", back_populates="adjustments")

    def to_dict(self):
        return {
            "id": self.id,
            "type": self.type.value if self.type else None,
            "points": self.points,
            "reason": self.reason,
            "applied_by": self.applied_by,
            "applied_at": self.applied_at.isoformat() if self.applied_at else None,
            "is_active": self.is_active
        }

class GradeRecord(Base):
    __tablename__ = "grade_records"

    id = Column(Integer, primary_key=True, autoincrement=True)
    enrollment_id = Column(Integer, nullable=False, index=True)
    item_id = Column(Integer, ForeignKey("gradebook_items.id", ondelete="CASCADE"), nullable=False, index=True)
    # NULL until the record is graded
    base_grade = Column(Float, nullable=True)
    base_grade_source = Column(Enum(BaseGradeSource), nullable=False, default=BaseGradeSource.manual)
    # workflow label only; aggregation looks at the effective score
    status = Column(Enum(GradeStatus), nullable=False, default=GradeStatus.draft)
    feedback = Column(Text, nullable=True)
    graded_by = Column(Integer, nullable=True)
    graded_at = Column(DateTime(timezone=True), nullable=True)
    # opaque pointer to the submission the grade came from
    submission_type = Column(String, nullable=True)
    submission_id = Column(String, nullable=True)
    is_overridden = Column(Boolean, nullable=False, default=False)
    override_grade = Column(Float, nullable=True)
    override_reason = Column(Text, nullable=True)
    overridden_by = Column(Integer, nullable=True)
    overridden_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    adjustments = relationship(
        "GradeAdjustment",
        back_populates="grade",
        cascade="all, delete-orphan",
        order_by="GradeAdjustment.id",
        lazy="selectin"
    )

    __table_args__ = (
        UniqueConstraint("enrollment_id", "item_id", name="uq_grade_records_enrollment_item"),
    )

    @property
    def is_graded(self) -> bool:
        return self.base_grade is not None or self.is_overridden

    @property
    def submission_ref(self):
        if self.submission_type is None and self.submission_id is None:
            return None
        return {"type": self.submission_type, "id": self.submission_id}

    def to_dict(self):
        return {
            "id": self.id,
            "enrollment_id": self.enrollment_id,
            "item_id": self.item_id,
            "base_grade": self.base_grade,
            "base_grade_source": self.base_grade_source.value if self.base_grade_source else None,
            "status": self.status.value if self.status else None,
            "feedback": self.feedback,
            "graded_by": self.graded_by,
            "graded_at": self.graded_at.isoformat() if self.graded_at else None,
            "submission_ref": self.submission_ref,
            "is_overridden": self.is_overridden,
            "override_grade": self.override_grade,
            "override_reason": self.override_reason,
            "adjustments": [adjustment.to_dict() for adjustment in self.adjustments]
        }
