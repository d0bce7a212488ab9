from dataclasses import dataclass

from books_api.core.services import (
    BookService,
    DbSessionService,
    EventNotifier,
    RedisService,
)
from books_api.core.storage import CacheStorage


@dataclass
class ApplicationDependencies:
    database_service: DbSessionService
    redis_service: RedisService
    cache_storage: CacheStorage
    notifier: EventNotifier
    book_service: BookService

    async def close(self) -> None:
        """Release collaborators in reverse order of construction."""
        await self.notifier.close()
        await self.redis_service.close()
        self.database_service.dispose()
