from sqlalchemy import create_engine
from sqlalchemy.ext.declarative import declarative_base
from sqlalchemy.orm import sessionmaker, Session
from typing import Generator
import threading
import redis
from .config import settings

database_url = settings.get_database_url

if database_url.startswith("sqlite"):
    # Sessions are handed across request threads and booking workers
    engine = create_engine(
        database_url,
        connect_args={"check_same_thread": False, "timeout": 30},
    )
else:
    # PostgreSQL connection pool settings
    engine = create_engine(
        database_url,
        pool_size=5,
        max_overflow=10,
        pool_timeout=30,
        pool_recycle=1800,  # Recycle connections after 30 minutes
    )

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

# Redis setup - mock for testing
if settings.TESTING:
    # Use a simple dict-based mock for Redis in tests
    class RedisMock:
        def __init__(self):
            self.data = {}
            self._lock = threading.Lock()

        def incr(self, key):
            with self._lock:
                value = int(self.data.get(key, "0")) + 1
                self.data[key] = str(value)
                return value

        def expire(self, key, time):
            return key in self.data

        def flushall(self):
            with self._lock:
                self.data.clear()
            return True

    redis_client = RedisMock()
else:
    # Real Redis client for production
    redis_client = redis.from_url(settings.REDIS_URL, decode_responses=True)

# Database dependency
def get_db() -> Generator[Session, None, None]:
    """Get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

# Redis dependency
def get_redis():
    """Get Redis client."""
    return redis_client

# Database initialization
def init_db():
    """Initialize database tables."""
    # Register every model on the metadata before creating tables
    from ..models import doctor, patient, schedule, appointment, clinical, billing, audit  # noqa: F401

    Base.metadata.create_all(bind=engine)
