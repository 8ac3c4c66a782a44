import motor.motor_asyncio
from pymongo import ASCENDING, DESCENDING
import os
from dotenv import load_dotenv

from app.utils.logging_config import get_logger

logger = get_logger(__name__)

load_dotenv()

MONGO_DETAILS = os.getenv("MONGO_DETAILS", "mongodb://localhost:27017")
DB_NAME = os.getenv("DB_NAME", "skillboard")

logger.info(f"Initializing MongoDB connection to database: {DB_NAME}")

try:
    client = motor.motor_asyncio.AsyncIOMotorClient(MONGO_DETAILS)
    db = client[DB_NAME]
    logger.info("MongoDB client initialized successfully")
except Exception as e:
    logger.error(f"Failed to initialize MongoDB client: {e}")
    raise

# Collections
skills_coll = db["skills"]
users_coll = db["users"]
endorsements_coll = db["endorsements"]
jobs_coll = db["jobs"]

# (collection, keys, options) created at startup
INDEXES = [
    (skills_coll, [("skill_id", ASCENDING)], {"unique": True}),
    (skills_coll, [("name", ASCENDING)], {"unique": True}),
    (users_coll, [("user_id", ASCENDING)], {"unique": True}),
    (users_coll, [("auth_id", ASCENDING)], {"unique": True}),
    # Users created from sparse identity hints may have no email yet
    (users_coll, [("email", ASCENDING)], {
        "unique": True,
        "partialFilterExpression": {"email": {"$type": "string"}},
    }),
    (users_coll, [("skills.skill_id", ASCENDING)], {}),
    (users_coll, [("name", ASCENDING)], {}),
    (endorsements_coll, [("endorsement_id", ASCENDING)], {"unique": True}),
    (endorsements_coll, [
        ("skill_id", ASCENDING),
        ("endorsed_user_id", ASCENDING),
        ("endorsed_by_id", ASCENDING),
    ], {"unique": True}),
    (endorsements_coll, [("endorsed_by_id", ASCENDING)], {}),
    (jobs_coll, [("job_id", ASCENDING)], {"unique": True}),
    (jobs_coll, [("posted_by_id", ASCENDING), ("created_at", DESCENDING)], {}),
]


async def init_indexes():
    """Index initialization for collections.

    Uniqueness of skill names, auth ids, emails and endorsement triples is
    enforced here, so the services rely on DuplicateKeyError for races.
    """
    logger.info("Starting database index initialization")

    for coll, keys, options in INDEXES:
        try:
            await coll.create_index(keys, **options)
            logger.debug(f"Created index on {coll.name}.{keys}")
        except Exception as e:
            if "already exists" in str(e).lower():
                logger.debug(f"Index on {coll.name}.{keys} already exists")
            else:
                logger.warning(f"Could not create index on {coll.name}.{keys}: {e}")

    logger.info("Database index initialization completed")

