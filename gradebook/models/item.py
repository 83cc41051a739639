from sqlalchemy import Column, Integer, String, Float, Boolean, DateTime, ForeignKey, Text
from gradebook.database import Base, utcnow

class GradebookItem(Base):
    __tablename__ = "gradebook_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    gradebook_id = Column(Integer, ForeignKey("gradebooks.id", ondelete="CASCADE"), nullable=False, index=True)
    # NULL category means the item is attached directly to the gradebook root
    category_id = Column(Integer, ForeignKey("gradebook_categories.id", ondelete="CASCADE"), nullable=True, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    max_grade = Column(Float, nullable=False, default=100.0)
    min_grade = Column(Float, nullable=False, default=0.0)
    weight = Column(Float, nullable=True)
    extra_credit = Column(Boolean, nullable=False, default=False)
    sort_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "gradebook_id": self.gradebook_id,
            "category_id": self.category_id,
            "name": self.name,
            "description": self.description,
            "max_grade": self.max_grade,
            "min_grade": self.min_grade,
            "weight": self.weight,
            "extra_credit": self.extra_credit,
            "sort_order": self.sort_order
        }
