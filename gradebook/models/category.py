from sqlalchemy import Column, Integer, String, Float, Boolean, DateTime, ForeignKey, Text
from gradebook.database import Base, utcnow

class GradebookCategory(Base):
    __tablename__ = "gradebook_categories"

    id = Column(Integer, primary_key=True, autoincrement=True)
    gradebook_id = Column(Integer, ForeignKey("gradebooks.id", ondelete="CASCADE"), nullable=False, index=True)
    # NULL parent means the category sits at the gradebook root
    parent_id = Column(Integer, ForeignKey("gradebook_categories.id", ondelete="CASCADE"), nullable=True, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    weight = Column(Float, nullable=True)
    extra_credit = Column(Boolean, nullable=False, default=False)
    sort_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "gradebook_id": self.gradebook_id,
            "parent_id": self.parent_id,
            "name": self.name,
            "description": self.description,
            "weight": self.weight,
            "extra_credit": self.extra_credit,
            "sort_order": self.sort_order
        }
