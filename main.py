import asyncio
import logging
from gradebook.core.config import settings
from gradebook.database import engine, init_db
from gradebook.dependencies import init_services

# Logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

async def startup():
    """Initialize the database and wire services"""
    try:
        await init_db()
        init_services()
        logger.info("Gradebook startup completed")
    finally:
        await engine.dispose()

if __name__ == "__main__":
    asyncio.run(startup())
