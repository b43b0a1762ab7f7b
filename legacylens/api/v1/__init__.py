"""
API v1 routers.
"""

from legacylens.api.v1 import health, jobs

__all__ = ["health", "jobs"]
