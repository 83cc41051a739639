# tests/conftest.py

import pytest
import pytest_asyncio

from gradebook.database import create_engine, create_session_maker, init_db
from gradebook.dependencies import Services, init_services
from gradebook.services.grading.enrollment_checker import StaticEnrollmentChecker
from gradebook.utils.gradebook_tree import CategoryNode, GradebookTree, ItemNode

COURSE_ID = 101
ENROLLMENT_ID = 7
OTHER_ENROLLMENT_ID = 8
STRANGER_ENROLLMENT_ID = 99


@pytest_asyncio.fixture
async def engine(tmp_path):
    # file-backed so concurrent sessions get their own connections
    async_engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'gradebook.db'}", echo=False)
    await init_db(async_engine)
    yield async_engine
    await async_engine.dispose()


@pytest.fixture
def session_maker(engine):
    return create_session_maker(engine)


@pytest_asyncio.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def enrollment_checker():
    return StaticEnrollmentChecker([(ENROLLMENT_ID, COURSE_ID), (OTHER_ENROLLMENT_ID, COURSE_ID)])


@pytest.fixture
def services(enrollment_checker):
    return init_services(enrollment_checker, target=Services())


@pytest_asyncio.fixture
async def gradebook_id(db, services):
    gradebook = await services.gradebook_service.create_gradebook(db, COURSE_ID, "Algebra I")
    return gradebook.id


@pytest_asyncio.fixture
async def graded_item_id(db, services, gradebook_id):
    """A single auto-weighted root item worth 100 points"""
    item = await services.hierarchy_service.create_item(db, gradebook_id, name="Midterm", max_grade=100)
    return item.id


@pytest.fixture
def scenario_tree():
    """Category 60 holding one item at 50 (30 overall), plus a root item at 40"""
    return GradebookTree(
        1,
        categories=[CategoryNode(id=1, name="Homework", weight=60.0)],
        items=[
            ItemNode(id=10, name="HW 1", category_id=1, weight=50.0),
            ItemNode(id=20, name="Final", weight=40.0, sort_order=1),
        ]
    )
