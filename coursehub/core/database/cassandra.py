"""Cassandra connection and schema management.

Provides:
- Cluster/session lifecycle
- Keyspace and table initialization for courses and enrollments

Sessions come from cassandra-asyncio-driver, whose ``session.aexecute()``
awaits queries instead of blocking the event loop.
"""

import structlog
from cassandra.auth import PlainTextAuthProvider
from cassandra.policies import DCAwareRoundRobinPolicy, TokenAwarePolicy
from cassandra_asyncio.cluster import Cluster

from coursehub.config.settings import Settings, get_settings
from coursehub.courses.models import COURSES_TABLES_CQL
from coursehub.enrollments.models import ENROLLMENTS_TABLES_CQL


logger = structlog.get_logger(__name__)


class CassandraConnection:
    """Cassandra connection manager.

    Connecting is synchronous; queries on the returned session are awaited
    through ``aexecute``.
    """

    _cluster: Cluster | None = None
    _session = None  # cassandra_asyncio session

    @classmethod
    def connect(cls, settings: Settings | None = None):
        """Establish connection to Cassandra cluster.

        Raises:
            ConnectionError: If connection fails
        """
        if cls._session is not None:
            return cls._session

        settings = settings or get_settings()

        auth_provider = None
        if settings.cassandra_username and settings.cassandra_password:
            auth_provider = PlainTextAuthProvider(
                username=settings.cassandra_username,
                password=settings.cassandra_password,
            )

        cls._cluster = Cluster(
            contact_points=settings.cassandra_hosts,
            port=settings.cassandra_port,
            auth_provider=auth_provider,
            protocol_version=settings.cassandra_protocol_version,
            load_balancing_policy=TokenAwarePolicy(DCAwareRoundRobinPolicy()),
            connect_timeout=settings.cassandra_connect_timeout,
        )

        try:
            cls._session = cls._cluster.connect()
            cls._session.default_timeout = settings.cassandra_request_timeout
            logger.info(
                "cassandra_connected",
                hosts=settings.cassandra_hosts,
                port=settings.cassandra_port,
            )
        except Exception as e:
            logger.error("cassandra_connection_failed", error=str(e))
            raise ConnectionError(f"Failed to connect to Cassandra: {e}") from e

        return cls._session

    @classmethod
    def disconnect(cls) -> None:
        """Close connection to Cassandra."""
        if cls._session is not None:
            cls._session.shutdown()
            cls._session = None
            logger.info("cassandra_session_closed")

        if cls._cluster is not None:
            cls._cluster.shutdown()
            cls._cluster = None
            logger.info("cassandra_cluster_closed")

    @classmethod
    def is_connected(cls) -> bool:
        return cls._session is not None and not cls._session.is_shutdown


async def init_keyspace(session, keyspace: str, settings: Settings) -> None:
    """Create keyspace if not exists."""
    if settings.is_production:
        replication = """
            'class': 'NetworkTopologyStrategy',
            'datacenter1': 3
        """
    else:
        replication = """
            'class': 'SimpleStrategy',
            'replication_factor': 1
        """

    cql = f"""
        CREATE KEYSPACE IF NOT EXISTS {keyspace}
        WITH replication = {{{replication}}}
        AND durable_writes = true
    """

    await session.aexecute(cql)
    logger.info("keyspace_created", keyspace=keyspace)


async def init_tables(session, keyspace: str) -> None:
    """Create course and enrollment tables."""
    for cql_template in COURSES_TABLES_CQL:
        await session.aexecute(cql_template.format(keyspace=keyspace))
    logger.info("courses_tables_created", keyspace=keyspace)

    for cql_template in ENROLLMENTS_TABLES_CQL:
        await session.aexecute(cql_template.format(keyspace=keyspace))
    logger.info("enrollments_tables_created", keyspace=keyspace)


async def init_cassandra(settings: Settings | None = None):
    """Connect, then create keyspace and tables if they don't exist.

    Returns:
        Session with ``aexecute()`` support
    """
    settings = settings or get_settings()

    session = CassandraConnection.connect(settings)
    await init_keyspace(session, settings.cassandra_keyspace, settings)
    session.set_keyspace(settings.cassandra_keyspace)
    await init_tables(session, settings.cassandra_keyspace)

    logger.info("cassandra_initialized", keyspace=settings.cassandra_keyspace)
    return session


def shutdown_cassandra() -> None:
    """Shutdown Cassandra connection."""
    CassandraConnection.disconnect()
