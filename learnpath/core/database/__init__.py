"""Database connection module.

Requires the ``cassandra`` extra (cassandra-asyncio-driver).
"""

from learnpath.core.database.async_cassandra import (
    AsyncCassandraConnection,
    init_async_cassandra,
    shutdown_async_cassandra,
)


__all__ = [
    "AsyncCassandraConnection",
    "init_async_cassandra",
    "shutdown_async_cassandra",
]
