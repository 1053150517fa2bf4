"""Cassandra session for the catalog and enrollment tables.

The cluster is opened once per process through `AsyncCassandraConnection`.
Services only ever see the session and call `session.aexecute()`, the
coroutine cassandra-asyncio-driver adds to the regular driver session.
"""

import structlog
from cassandra.auth import PlainTextAuthProvider
from cassandra.policies import DCAwareRoundRobinPolicy, TokenAwarePolicy
from cassandra_asyncio.cluster import Cluster

from learnmate.config.settings import Settings, get_settings
from learnmate.courses.models import CATALOG_TABLES_CQL
from learnmate.enrollments.models import ENROLLMENT_TABLES_CQL


logger = structlog.get_logger(__name__)

# Created in order; enrollment rows reference catalog ids only by value.
SCHEMA_GROUPS: tuple[tuple[str, list[str]], ...] = (
    ("catalog", CATALOG_TABLES_CQL),
    ("enrollments", ENROLLMENT_TABLES_CQL),
)


def replication_for(settings: Settings) -> str:
    """Replication map for the keyspace, as a CQL literal."""
    if settings.is_production:
        return "{'class': 'NetworkTopologyStrategy', 'datacenter1': 3}"
    return "{'class': 'SimpleStrategy', 'replication_factor': 1}"


class AsyncCassandraConnection:
    """Owns the cluster and its single shared session."""

    _cluster: Cluster | None = None
    _session = None

    @classmethod
    def _build_cluster(cls, settings: Settings) -> Cluster:
        auth_provider = None
        if settings.cassandra_username and settings.cassandra_password:
            auth_provider = PlainTextAuthProvider(
                username=settings.cassandra_username,
                password=settings.cassandra_password,
            )
        return Cluster(
            contact_points=settings.cassandra_hosts,
            port=settings.cassandra_port,
            auth_provider=auth_provider,
            protocol_version=settings.cassandra_protocol_version,
            load_balancing_policy=TokenAwarePolicy(DCAwareRoundRobinPolicy()),
            connect_timeout=settings.cassandra_connect_timeout,
        )

    @classmethod
    def connect(cls):
        """Return the shared session, opening the cluster on first use.

        Raises:
            ConnectionError: If no contact point accepts the connection
        """
        if cls._session is not None:
            return cls._session

        settings = get_settings()
        cls._cluster = cls._build_cluster(settings)
        try:
            cls._session = cls._cluster.connect()
        except Exception as e:
            logger.error(
                "cassandra_connection_failed",
                hosts=settings.cassandra_hosts,
                error=str(e),
            )
            cls._cluster.shutdown()
            cls._cluster = None
            raise ConnectionError(f"Failed to connect to Cassandra: {e}") from e

        logger.info(
            "cassandra_connected",
            hosts=settings.cassandra_hosts,
            port=settings.cassandra_port,
        )
        return cls._session

    @classmethod
    def disconnect(cls) -> None:
        if cls._session is not None:
            cls._session.shutdown()
            cls._session = None
        if cls._cluster is not None:
            cls._cluster.shutdown()
            cls._cluster = None
            logger.info("cassandra_disconnected")

    @classmethod
    def is_connected(cls) -> bool:
        return cls._session is not None and not cls._session.is_shutdown


async def create_schema(session, settings: Settings) -> None:
    """Create the keyspace and every LearnMate table that is missing."""
    keyspace = settings.cassandra_keyspace
    await session.aexecute(
        f"CREATE KEYSPACE IF NOT EXISTS {keyspace} "
        f"WITH replication = {replication_for(settings)} AND durable_writes = true"
    )
    session.set_keyspace(keyspace)

    for group, statements in SCHEMA_GROUPS:
        for cql in statements:
            await session.aexecute(cql.format(keyspace=keyspace))
        logger.info("cassandra_tables_ready", group=group, tables=len(statements))


async def init_async_cassandra():
    """Connect and make sure the schema exists.

    Returns:
        Session with aexecute() support
    """
    settings = get_settings()
    session = AsyncCassandraConnection.connect()
    await create_schema(session, settings)
    logger.info("cassandra_initialized", keyspace=settings.cassandra_keyspace)
    return session


async def shutdown_async_cassandra() -> None:
    AsyncCassandraConnection.disconnect()
