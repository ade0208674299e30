"""
Infrastructure module: Database, Redis, job queue and locks.

Provides:
- Database resource and sessions (db.py)
- Redis connection pool (redis_pool.py)
- At-least-once job queue (jobs.py)
- Keyed asyncio locks (locks.py)
- Request correlation (correlation.py)
"""

from shared.infrastructure.db import (
    Database,
    DatabaseNotOpenError,
    get_db,
    safe_commit,
)
from shared.infrastructure.redis_pool import (
    get_redis_pool,
    close_redis_pool,
)
from shared.infrastructure.jobs import Job, JobQueue
from shared.infrastructure.locks import KeyedLockManager

__all__ = [
    # db
    "Database",
    "DatabaseNotOpenError",
    "get_db",
    "safe_commit",
    # redis
    "get_redis_pool",
    "close_redis_pool",
    # jobs
    "Job",
    "JobQueue",
    # locks
    "KeyedLockManager",
]
