# ============================================================================
# REPOSITORIES MODULE
# ============================================================================
# EPOCH: 1 - RECIPE ENGINE
# STATUS: Core - Persistence layer
# PURPOSE: Execution record storage (PostgreSQL or in-memory)
# CREATED: 19 OCT 2026
# ============================================================================
"""
Repositories Module

Provides storage for execution records.
Uses psycopg3 async with connection pooling, or an in-memory store.

Usage:
    from repositories import ExecutionRepository, get_pool

    pool = await get_pool()
    repo = ExecutionRepository(pool)
    execution = await repo.get(execution_id)
"""

from .database import get_pool, init_pool, close_pool, get_connection
from .base import ExecutionStore
from .execution_repo import ExecutionRepository
from .memory import InMemoryExecutionRepository

__all__ = [
    "get_pool",
    "init_pool",
    "close_pool",
    "get_connection",
    "ExecutionStore",
    "ExecutionRepository",
    "InMemoryExecutionRepository",
]
