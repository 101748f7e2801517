# Engine, session factory and declarative base shared by models, services and migrations.
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker, declarative_base
from typing import Generator
import os

# Local development runs on ./nhatro.db; staging and production point DATABASE_URL at
# PostgreSQL or MySQL.
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./nhatro.db")

# SQLite: the sweeper thread and request threads share the file, so disable the
# same-thread check. Server databases: pre-ping and recycle pooled connections.
if DATABASE_URL.startswith("sqlite"):
    engine = create_engine(DATABASE_URL, connect_args={"check_same_thread": False})
else:
    engine = create_engine(
        DATABASE_URL,
        pool_pre_ping=True,
        pool_recycle=280,
        pool_size=10,
        max_overflow=20,
    )

# Services commit and roll back explicitly
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db() -> Generator:
    """FastAPI dependency: one session per request, always closed."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def is_sqlite(db: Session) -> bool:
    # SQLite has no SELECT ... FOR UPDATE; callers skip row locks there
    return str(db.get_bind().dialect.name) == "sqlite"
