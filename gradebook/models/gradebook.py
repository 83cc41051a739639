from sqlalchemy import Column, Integer, String, Boolean, DateTime
from gradebook.database import Base, utcnow

class Gradebook(Base):
    __tablename__ = "gradebooks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    course_id = Column(Integer, nullable=False, unique=True, index=True)
    name = Column(String, nullable=True)
    enabled = Column(Boolean, nullable=False, default=True)
    # bumped by every structural mutation, under a row lock
    structure_version = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "course_id": self.course_id,
            "name": self.name,
            "enabled": self.enabled,
            "structure_version": self.structure_version,
            "created_at": self.created_at.isoformat() if self.created_at else None
        }
