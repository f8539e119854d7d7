import structlog
from motor.motor_asyncio import AsyncIOMotorClient

from config import DB_NAME, MONGODB_URL

logger = structlog.get_logger(__name__)


def create_client(url: str = MONGODB_URL) -> AsyncIOMotorClient:
    return AsyncIOMotorClient(url)


def get_database(client: AsyncIOMotorClient, name: str = DB_NAME):
    return client[name]


async def check_db(client: AsyncIOMotorClient) -> None:
    """Fail-fast check so you instantly know Mongo is reachable."""
    await client.admin.command("ping")
    logger.info("mongodb_connected")


async def create_indexes(db) -> None:
    """Indexes backing the equality queries and the feed ordering."""
    await db.users.create_index("email", unique=True)
    await db.users.create_index("name")
    await db.exercises.create_index("programId")
    await db.progress_logs.create_index([("userId", 1), ("exerciseId", 1)])
    await db.workout_plans.create_index("creatorId")
    await db.workout_plans.create_index("joinedUserIds")
    await db.posts.create_index([("timestamp", -1), ("_id", -1)])
    await db.posts.create_index("userId")
    await db.comments.create_index("postId")
    await db.likes.create_index("postId")
    await db.follows.create_index("followerId")
    await db.follows.create_index("followedId")
    await db.notifications.create_index([("userId", 1), ("isRead", 1)])
    logger.info("indexes_created")
