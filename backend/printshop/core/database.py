"""
Configurazione Database - SQLAlchemy 2.0 Async
Progetto: Print Shop Manager (Gestionale Tipografia)

Definisce engine, session factory e dependency injection per FastAPI.

Gli stessi builder sono usati dai test con SQLite in memoria (aiosqlite):
per SQLite il pool a dimensione fissa non è applicabile e viene sostituito
da uno StaticPool, così tutte le sessioni vedono lo stesso database.
"""

import logging
from typing import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from printshop.core.config import settings
from printshop.core.exceptions import ConflictError

logger = logging.getLogger(__name__)


# ------------------------------------------------------------
# Builder
# ------------------------------------------------------------
def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """
    Crea un engine async adatto al backend indicato dall'URL.

    Args:
        database_url: URL SQLAlchemy (postgresql+asyncpg o sqlite+aiosqlite)
        echo: Log delle query SQL

    Returns:
        AsyncEngine: Engine configurato
    """
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite":
        return create_async_engine(
            url,
            echo=echo,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    return create_async_engine(
        url,
        echo=echo,
        pool_pre_ping=True,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
    )


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory con expire_on_commit disabilitato (oggetti leggibili dopo il commit)."""
    return async_sessionmaker(
        bind=bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


# ------------------------------------------------------------
# Engine e Session Factory applicativi
# ------------------------------------------------------------
engine: AsyncEngine = build_engine(settings.database_url, echo=settings.debug)
AsyncSessionLocal = build_session_factory(engine)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency injection per FastAPI.

    Crea una sessione database per ogni richiesta; in caso di eccezione
    non gestita la transazione aperta viene annullata.

    Yields:
        AsyncSession: Sessione database async
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """Verifica all'avvio che il database sia raggiungibile."""
    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
        logger.info("Connessione al database stabilita con successo")
    except Exception as e:
        logger.error("Errore connessione database: %s", e)
        raise


async def close_db() -> None:
    """Chiude le connessioni al database durante lo shutdown."""
    await engine.dispose()
    logger.info("Connessioni database chiuse")


async def commit_or_conflict(db: AsyncSession, action: str) -> None:
    """
    Esegue il commit della transazione del service.

    Qualunque errore del database (vincoli, valori fuori range, connessione)
    annulla la transazione e viene convertito in ConflictError.

    Args:
        db: Sessione database
        action: Descrizione dell'operazione, usata in log e messaggio

    Raises:
        ConflictError: Se il database rifiuta il commit
    """
    try:
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("Errore database durante %s: %s", action, e)
        raise ConflictError(f"Errore durante {action}")
