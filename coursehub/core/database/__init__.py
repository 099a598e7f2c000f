"""Database connection module for CourseHub."""

from coursehub.core.database.cassandra import (
    CassandraConnection,
    init_cassandra,
    shutdown_cassandra,
)


__all__ = [
    "CassandraConnection",
    "init_cassandra",
    "shutdown_cassandra",
]
