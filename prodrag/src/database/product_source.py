"""
prodrag - Product Source (MongoDB)
===================================
Async read-only access to the product catalogue via ``motor``.

The connection is opened and closed around each logical unit of work
(one ETL fetch, one health check); nothing is cached between runs.

Usage:
    async with ProductSource.from_settings(settings) as source:
        products = await source.fetch_all()
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import motor.motor_asyncio

from prodrag.config.settings import Settings
from prodrag.src.utils.logger import get_logger

logger = get_logger(__name__)

ProductDocument = dict[str, Any]
ClientFactory = Callable[[str], Any]


def _default_client_factory(timeout_ms: int) -> ClientFactory:
    def factory(uri: str) -> motor.motor_asyncio.AsyncIOMotorClient:
        return motor.motor_asyncio.AsyncIOMotorClient(uri, serverSelectionTimeoutMS=timeout_ms)
    return factory


class ProductSource:
    """
    MongoDB collection holding the product records.

    Parameters
    ----------
    uri
        MongoDB connection string (never logged).
    db_name, collection_name
        Location of the products.
    client_factory
        Builds the client from *uri*; override in tests.
    """

    __slots__ = ("_uri", "_db_name", "_collection_name", "_client_factory", "_client")

    def __init__(self, uri: str, db_name: str, collection_name: str, client_factory: ClientFactory | None = None, timeout_seconds: float = 30.0) -> None:
        self._uri = uri
        self._db_name = db_name
        self._collection_name = collection_name
        self._client_factory = client_factory or _default_client_factory(int(timeout_seconds * 1000))
        self._client: Any = None


    @classmethod
    def from_settings(cls, settings: Settings, client_factory: ClientFactory | None = None) -> ProductSource:
        return cls(settings.MONGO_URI.get_secret_value(), settings.MONGO_DB_NAME, settings.MONGO_COLLECTION, client_factory=client_factory, timeout_seconds=settings.REQUEST_TIMEOUT_SECONDS)


    async def connect(self) -> None:
        """Create the client (motor connects lazily on first operation)."""
        if self._client is None:
            self._client = self._client_factory(self._uri)
            logger.info("MongoDB client created for %s.%s", self._db_name, self._collection_name)


    async def fetch_all(self) -> list[ProductDocument]:
        """Return every product document in the collection."""
        collection = self._collection()
        products: list[ProductDocument] = await collection.find({}).to_list(length=None)
        logger.info("Retrieved %d products from MongoDB", len(products))
        return products


    async def count(self) -> int:
        return await self._collection().count_documents({})


    async def health_check(self) -> bool:
        """Ping the server; returns False instead of raising on failure."""
        try:
            await self.connect()
            await self._client.admin.command("ping")
        except Exception as exc:
            logger.error("MongoDB connection failed: %s", exc)
            return False
        logger.info("MongoDB connection successful.")
        return True


    async def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
            logger.debug("MongoDB client closed.")


    def _collection(self) -> Any:
        if self._client is None:
            raise RuntimeError("ProductSource is not connected. Call connect() first.")
        return self._client[self._db_name][self._collection_name]


    async def __aenter__(self) -> ProductSource:
        await self.connect()
        return self


    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
