from typing import Iterable, Protocol, Tuple
from sqlalchemy.ext.asyncio import AsyncSession


class EnrollmentChecker(Protocol):
    """Answers whether an enrollment belongs to a course; supplied by the host application"""

    async def __call__(self, db: AsyncSession, enrollment_id: int, course_id: int) -> bool:
        ...


class StaticEnrollmentChecker:
    """Enrollment check backed by a fixed set of (enrollment_id, course_id) pairs"""

    def __init__(self, enrollments: Iterable[Tuple[int, int]]):
        self._enrollments = set(enrollments)

    def add(self, enrollment_id: int, course_id: int) -> None:
        self._enrollments.add((enrollment_id, course_id))

    async def __call__(self, db: AsyncSession, enrollment_id: int, course_id: int) -> bool:
        return (enrollment_id, course_id) in self._enrollments
