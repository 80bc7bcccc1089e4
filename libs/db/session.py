"""Request-scoped database sessions."""

from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession

from libs.common.logging import get_logger
from libs.db.config import AsyncSessionLocal

logger = get_logger(__name__)


async def get_async_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency yielding one session per request.

    Ledger writes commit inside the service layer. If the handler raises with
    a transaction still open (rows locked FOR UPDATE, entries flushed but not
    committed) it is rolled back here before the connection returns to the pool.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            if session.in_transaction():
                logger.warning("Rolling back open transaction after request error")
                await session.rollback()
            raise
