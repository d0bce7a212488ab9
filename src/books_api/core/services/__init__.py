"""Core services exports."""

from .book_service import BookService

# Database Service
from .database.db_manage import DbManageService
from .database.db_session import DbSessionService

# Event notification
from .events.notifier import EventNotifier, KafkaNotifier, LoggingNotifier

# Redis
from .redis_service import RedisService

__all__ = [
    "BookService",
    "DbManageService",
    "DbSessionService",
    "EventNotifier",
    "KafkaNotifier",
    "LoggingNotifier",
    "RedisService",
]
