"""
Database engine and session management
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from printshop.config import settings


connect_args = {}
if settings.DATABASE_URL.startswith("sqlite"):
    # TestClient and uvicorn workers hit the same file from several threads
    connect_args["check_same_thread"] = False

engine = create_engine(settings.DATABASE_URL, pool_pre_ping=True, connect_args=connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """Dependency that yields a database session per request"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """Create tables for all registered models"""
    # Import models so they register on Base.metadata
    from printshop.models import order, product, user  # noqa: F401
    Base.metadata.create_all(bind=engine)
