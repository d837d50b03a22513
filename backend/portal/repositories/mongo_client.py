"""MongoDB Client - Connection and Collection Management"""
from typing import Any, Dict, Optional
from pymongo import MongoClient as PyMongoClient
from pymongo.database import Database
from pymongo.collection import Collection
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import ConnectionFailure, PyMongoError

from ..config.settings import settings
from ..domain.errors import DependencyUnavailableError
from ..utils.logger import get_logger

logger = get_logger(__name__)

# Global client instance
_client: Optional[PyMongoClient] = None
_database: Optional[Database] = None


def get_client() -> PyMongoClient:
    """Get or create MongoDB client with bounded timeouts"""
    global _client
    if _client is None:
        logger.info(f"Connecting to MongoDB: {settings.mongo_uri}")
        _client = PyMongoClient(
            settings.mongo_uri,
            tz_aware=True,
            serverSelectionTimeoutMS=settings.mongo_server_selection_timeout_ms,
            connectTimeoutMS=settings.mongo_connect_timeout_ms,
            socketTimeoutMS=settings.mongo_socket_timeout_ms,
            timeoutMS=settings.mongo_operation_timeout_ms,
        )
        try:
            _client.admin.command("ping")
            logger.info("MongoDB connection successful")
        except ConnectionFailure as e:
            logger.error(f"MongoDB connection failed: {e}")
            _client = None
            raise DependencyUnavailableError("database") from e
    return _client


def get_database() -> Database:
    """Get the application database"""
    global _database
    if _database is None:
        client = get_client()
        _database = client[settings.mongo_db]
        logger.info(f"Using database: {settings.mongo_db}")
    return _database


def get_collection(name: str) -> Collection:
    """Get a collection from the database"""
    db = get_database()
    return db[name]


def close_connection() -> None:
    """Close MongoDB connection"""
    global _client, _database
    if _client is not None:
        _client.close()
        _client = None
        _database = None
        logger.info("MongoDB connection closed")


def is_unavailable_error(exc: BaseException) -> bool:
    """True for timeouts and lost connections (retryable by the caller)"""
    if isinstance(exc, ConnectionFailure):
        return True
    return isinstance(exc, PyMongoError) and bool(getattr(exc, "timeout", False))


def create_indexes() -> None:
    """Create all required indexes"""
    db = get_database()
    logger.info("Creating MongoDB indexes...")

    # Customers
    customers = db["customers"]
    customers.create_index("id", unique=True)
    customers.create_index("status")
    customers.create_index("legal_name")

    # Projects
    projects = db["projects"]
    projects.create_index("id", unique=True)
    projects.create_index("customer_id")
    projects.create_index([("assignee_id", ASCENDING), ("status", ASCENDING)])
    projects.create_index("created_at", background=True)

    # Tasks (subtasks share the collection)
    tasks = db["tasks"]
    tasks.create_index("id", unique=True)
    tasks.create_index("project_id")
    tasks.create_index("customer_id")
    tasks.create_index("parent_task_id")
    tasks.create_index([("assignee_id", ASCENDING), ("status", ASCENDING)])
    tasks.create_index("due_date")

    # Tickets
    tickets = db["tickets"]
    tickets.create_index("id", unique=True)
    tickets.create_index("project_id")
    tickets.create_index("customer_id")
    tickets.create_index([("assignee_id", ASCENDING), ("status", ASCENDING)])
    tickets.create_index("created_at", background=True)

    # Comments
    comments = db["comments"]
    comments.create_index("id", unique=True)
    comments.create_index([("task_id", ASCENDING), ("created_at", ASCENDING)])
    comments.create_index([("ticket_id", ASCENDING), ("created_at", ASCENDING)])

    # Users
    staff_users = db["staff_users"]
    staff_users.create_index("id", unique=True)
    staff_users.create_index("email", unique=True)
    consumer_users = db["consumer_users"]
    consumer_users.create_index("id", unique=True)
    consumer_users.create_index("email", unique=True)
    consumer_users.create_index("customer_id")

    # Audit log (append-only)
    audit_logs = db["audit_logs"]
    audit_logs.create_index("id", unique=True)
    audit_logs.create_index([("timestamp", DESCENDING)])
    audit_logs.create_index([("entity_type", ASCENDING), ("entity_id", ASCENDING)])
    audit_logs.create_index("action")

    # In-app notifications
    notifications = db["notifications"]
    notifications.create_index("id", unique=True)
    notifications.create_index([("user_id", ASCENDING), ("timestamp", DESCENDING)])
    notifications.create_index([("user_id", ASCENDING), ("read", ASCENDING)])
    notifications.create_index("dedup_key", sparse=True)

    # Email outbox
    notification_outbox = db["notification_outbox"]
    notification_outbox.create_index("id", unique=True)
    notification_outbox.create_index([("status", ASCENDING), ("next_retry_at", ASCENDING)])
    notification_outbox.create_index("locked_until")

    # Deferred audit entries and notifications
    side_effect_outbox = db["side_effect_outbox"]
    side_effect_outbox.create_index("id", unique=True)
    side_effect_outbox.create_index([("status", ASCENDING), ("next_retry_at", ASCENDING)])
    side_effect_outbox.create_index("locked_until")

    logger.info("MongoDB indexes created successfully")


def health_check() -> Dict[str, Any]:
    """Check MongoDB health"""
    try:
        client = get_client()
        client.admin.command("ping")
        return {
            "status": "healthy",
            "database": settings.mongo_db,
            "connection": "ok"
        }
    except (PyMongoError, DependencyUnavailableError) as e:
        logger.error(f"MongoDB health check failed: {e}")
        return {
            "status": "unhealthy",
            "database": settings.mongo_db,
            "error": "unreachable"
        }
