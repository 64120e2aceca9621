"""
Unified Database Management
Provides the SQLAlchemy engine, session factory and FastAPI session dependency
"""

import logging
from contextlib import contextmanager
from typing import Optional, Iterator
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, sessionmaker, Session

from delivery_recon.core.config import config, DatabaseConfig
from delivery_recon.core.exceptions import DatabaseError

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Declarative base for all ORM models"""
    pass


class DatabaseManager:
    """
    Database connection manager

    Any SQLAlchemy URL is accepted. SQLite gets a thread-agnostic
    connection, every other backend gets a pooled engine.
    """

    def __init__(self, db_config: Optional[DatabaseConfig] = None):
        self.db_config = db_config or config.database
        self.engine: Optional[Engine] = None
        self.session_factory = None
        self._initialize_engine()

    def _initialize_engine(self):
        """Initialize SQLAlchemy engine and session factory"""
        try:
            if self.db_config.is_sqlite:
                self.engine = create_engine(
                    self.db_config.url,
                    connect_args={"check_same_thread": False},
                    echo=self.db_config.echo
                )
            else:
                self.engine = create_engine(
                    self.db_config.url,
                    pool_size=self.db_config.pool_size,
                    max_overflow=self.db_config.max_overflow,
                    pool_recycle=self.db_config.pool_recycle,
                    pool_pre_ping=True,
                    echo=self.db_config.echo
                )

            self.session_factory = sessionmaker(
                bind=self.engine,
                autocommit=False,
                autoflush=False
            )
            logger.info(f"✅ Database engine initialized ({self.engine.dialect.name})")

        except SQLAlchemyError as e:
            logger.error(f"❌ Failed to initialize database engine: {e}")
            raise DatabaseError("Failed to initialize database engine", {"error": str(e)})

    def create_tables(self):
        """Create all tables known to the ORM metadata"""
        import delivery_recon.models  # noqa: F401  (registers tables on Base.metadata)
        Base.metadata.create_all(bind=self.engine)
        logger.info(f"📦 Ensured {len(Base.metadata.tables)} tables exist")

    @contextmanager
    def get_sync_session(self) -> Iterator[Session]:
        """
        Get database session with automatic commit/rollback

        Usage:
            with db_manager.get_sync_session() as session:
                session.execute(query)
        """
        session = self.session_factory()
        try:
            yield session
            session.commit()
        except Exception as e:
            session.rollback()
            logger.error(f"Database session error: {e}")
            raise
        finally:
            session.close()

    def test_connection(self) -> bool:
        """Test database connectivity"""
        try:
            with self.engine.connect() as connection:
                connection.execute(text("SELECT 1"))
            logger.info("✅ Database connection test successful")
            return True
        except SQLAlchemyError as e:
            logger.error(f"❌ Database connection test failed: {e}")
            return False

    def close(self):
        """Dispose the engine's connection pool"""
        if self.engine:
            self.engine.dispose()
            logger.info("🔌 Database engine disposed")


# Global database manager instance
db_manager = DatabaseManager()


def get_db() -> Iterator[Session]:
    """FastAPI dependency yielding a request-scoped session"""
    session = db_manager.session_factory()
    try:
        yield session
    finally:
        session.close()
