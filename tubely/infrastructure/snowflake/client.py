"""
Connections to the Snowflake warehouse holding video records.

get_snowflake_connection opens one authenticated connection per request
and always closes it. create_snowflake_connection adds a mock mode that
keeps rows in a dict, so the API runs locally without a warehouse.

Route handlers never use this module directly: they get a VideoRepository
from api/dependencies.py.
"""

import logging
import re
from contextlib import contextmanager
from typing import Generator, Optional

from ...core.media.errors import PersistenceError
from .repositories.videos import SnowflakeConfig, SnowflakeConnection

logger = logging.getLogger(__name__)


class SnowflakeConnectionError(PersistenceError):
    """Could not open or authenticate a warehouse connection."""
    public_message = "Database unavailable"


def _load_private_key(key_path: str) -> bytes:
    """
    Read an unencrypted PEM key and return it as PKCS8 DER.

    The connector takes key bytes, not a path.
    """
    from cryptography.hazmat.primitives import serialization

    with open(key_path, 'rb') as pem:
        key = serialization.load_pem_private_key(pem.read(), password=None)

    return key.private_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


@contextmanager
def get_snowflake_connection(config: SnowflakeConfig) -> Generator[SnowflakeConnection, None, None]:
    """
    Open a connection for the duration of the block.

    Key-pair auth wins when a key path is configured; otherwise the
    password is used. Having neither is a configuration error.

        with get_snowflake_connection(config) as conn:
            repo = VideoRepository(conn)
    """
    import snowflake.connector

    params = {
        'account': config.account,
        'user': config.user,
        'database': config.database,
        'schema': config.schema,
        'warehouse': config.warehouse,
        'role': config.role,
    }

    if config.private_key_path:
        logger.info("Connecting to Snowflake with key-pair auth")
        params['private_key'] = _load_private_key(config.private_key_path)
    elif config.password:
        logger.info("Connecting to Snowflake with password auth")
        params['password'] = config.password
    else:
        raise SnowflakeConnectionError("Snowflake needs a password or a private key path")

    try:
        conn = snowflake.connector.connect(**params)
    except snowflake.connector.errors.DatabaseError as e:
        logger.error(
            "Could not connect to Snowflake",
            extra={"account": config.account, "error": str(e)}
        )
        raise SnowflakeConnectionError(f"Snowflake connection failed: {e}") from e

    logger.debug(
        "Snowflake connection open",
        extra={"account": config.account, "schema": f"{config.database}.{config.schema}"}
    )

    try:
        yield conn
    finally:
        try:
            conn.close()
        except Exception as e:
            # The request already finished; a failed close only needs a trace
            logger.warning("Snowflake connection did not close cleanly", extra={"error": str(e)})


# ---------------------------------------------------------------------------
# In-memory Mock
# ---------------------------------------------------------------------------

_WHITESPACE = re.compile(r"\s+")


class MockSnowflakeCursor:
    """
    Cursor over the in-memory videos table.

    Recognises the handful of statements VideoRepository issues by their
    leading keywords; anything else raises, so a new query can't silently
    do nothing in tests.
    """

    def __init__(self, tables: dict) -> None:
        self._tables = tables
        self._results: list = []
        self._rowcount = 0

    def execute(self, query: str, params: Optional[tuple] = None) -> "MockSnowflakeCursor":
        statement = _WHITESPACE.sub(" ", query.upper()).strip()
        logger.debug("Mock execute", extra={"statement": statement[:100]})

        self._results = []
        self._rowcount = 0

        if statement.startswith("INSERT INTO VIDEOS"):
            self._insert(params)
        elif statement.startswith("SELECT") and "FROM VIDEOS" in statement:
            self._select(statement, params)
        elif statement.startswith("SELECT 1"):
            self._results = [(1,)]
        elif statement.startswith("UPDATE VIDEOS"):
            self._update(params)
        elif statement.startswith("DELETE FROM VIDEOS"):
            self._delete(params)
        elif not statement.startswith("CREATE TABLE"):
            raise ValueError(f"Mock cursor cannot handle: {statement[:60]}")

        return self

    def _insert(self, params: tuple) -> None:
        videos = self._tables["videos"]
        if params[0] in videos:
            raise ValueError(f"Duplicate key: {params[0]}")
        videos[params[0]] = tuple(params)
        self._rowcount = 1

    def _select(self, statement: str, params: tuple) -> None:
        videos = self._tables["videos"]

        if "WHERE VIDEO_ID" in statement:
            row = videos.get(params[0])
            self._results = [row] if row else []
        elif "WHERE USER_ID" in statement:
            owned = [row for row in videos.values() if row[1] == params[0]]
            # column 7 is created_at
            self._results = sorted(owned, key=lambda row: row[7], reverse=True)

    def _update(self, params: tuple) -> None:
        title, description, bucket, key, thumbnail_url, updated_at, video_id, version = params
        row = self._tables["videos"].get(video_id)

        # column 9 is version; a mismatch updates nothing, like the real WHERE
        if row is None or row[9] != version:
            return

        self._tables["videos"][video_id] = (
            row[0], row[1], title, description, bucket, key,
            thumbnail_url, row[7], updated_at, row[9] + 1,
        )
        self._rowcount = 1

    def _delete(self, params: tuple) -> None:
        if self._tables["videos"].pop(params[0], None) is not None:
            self._rowcount = 1

    def fetchone(self):
        return self._results[0] if self._results else None

    def fetchall(self) -> list:
        return list(self._results)

    def close(self) -> None:
        pass

    @property
    def rowcount(self) -> int:
        return self._rowcount


class MockSnowflakeConnection:
    """
    Stand-in for a Snowflake connection with tables held in memory.

    Every cursor shares the same tables, and commit and rollback do
    nothing, so writes are visible immediately. Fine for local development
    and tests, never for production.
    """

    def __init__(self) -> None:
        # {table_name: {primary_key: row_tuple}}
        self._tables: dict[str, dict[str, tuple]] = {"videos": {}}
        logger.info("Using in-memory Snowflake mock")

    def cursor(self) -> MockSnowflakeCursor:
        return MockSnowflakeCursor(self._tables)

    def commit(self) -> None:
        pass

    def rollback(self) -> None:
        pass

    def close(self) -> None:
        pass


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

@contextmanager
def create_snowflake_connection(
    config: Optional[SnowflakeConfig] = None,
    mock_mode: bool = False,
) -> Generator[SnowflakeConnection, None, None]:
    """
    Yield a real or mock connection depending on mock_mode.

    Args:
        config: Connection settings, required unless mock_mode
        mock_mode: Yield a fresh MockSnowflakeConnection instead
    """
    if mock_mode:
        yield MockSnowflakeConnection()
        return

    if config is None:
        raise ValueError("config is required when not in mock mode")

    with get_snowflake_connection(config) as conn:
        yield conn
