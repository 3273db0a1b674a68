"""Database layer: async SQLAlchemy over SQLite (dev) or Postgres."""

from marias.db.engine import close_db, get_session, init_db
from marias.db.models import (
    AuthToken,
    Base,
    Channel,
    ConfigHistory,
    Feedback,
    InventoryCount,
    InventoryItem,
    Message,
    Module,
    Notification,
    Role,
    ShoppingItem,
    SystemConfig,
    Task,
    User,
)
from marias.db.repository import Repository

__all__ = [
    "AuthToken",
    "Base",
    "Channel",
    "ConfigHistory",
    "Feedback",
    "InventoryCount",
    "InventoryItem",
    "Message",
    "Module",
    "Notification",
    "Repository",
    "Role",
    "ShoppingItem",
    "SystemConfig",
    "Task",
    "User",
    "close_db",
    "get_session",
    "init_db",
]
