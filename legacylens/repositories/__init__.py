"""
Repositories package - job persistence.
"""

from legacylens.repositories.base import JobRepository
from legacylens.repositories.job_repo import InMemoryJobRepository, RedisJobRepository

__all__ = [
    "InMemoryJobRepository",
    "JobRepository",
    "RedisJobRepository",
]
