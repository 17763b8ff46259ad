# database.py
from motor.motor_asyncio import AsyncIOMotorClient
import logging

import config

logger = logging.getLogger(__name__)

_client = None


def get_client() -> AsyncIOMotorClient:
    global _client
    if _client is None:
        _client = AsyncIOMotorClient(config.MONGODB_URI)
    return _client


def get_db():
    """FastAPI dependency returning the application database."""
    return get_client()[config.MONGODB_DB]


async def init_db(db=None):
    if db is None:
        db = get_db()
    await db.users.create_index("id", unique=True)
    await db.users.create_index("email", unique=True)
    await db.quizzes.create_index("id", unique=True)
    await db.quizzes.create_index([("isPublic", 1), ("createdAt", -1)])
    await db.quiz_assignments.create_index("id", unique=True)
    await db.quiz_assignments.create_index([("quiz", 1), ("assignedTo", 1)], unique=True)
    logger.info("Database indexes ensured")


def close_client():
    global _client
    if _client is not None:
        _client.close()
        _client = None
