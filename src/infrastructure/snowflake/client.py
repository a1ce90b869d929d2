"""
Snowflake database connection management.

Provides connection factory and context manager for Snowflake operations.
Includes mock mode with in-memory storage for local development.

Using the repository pattern means most code never touches this module
directly - it goes through VideoRepository which handles the translation
between domain models and database rows.
"""

import base64
import logging
from contextlib import contextmanager
from typing import Generator, Optional

from .repositories.videos import SnowflakeConfig, SnowflakeConnection

logger = logging.getLogger(__name__)


class SnowflakeConnectionError(Exception):
    """Raised when Snowflake connection fails."""
    pass


def _load_private_key(pem_bytes: bytes) -> bytes:
    """
    Convert a PEM private key into the DER bytes snowflake-connector expects.
    """
    from cryptography.hazmat.backends import default_backend
    from cryptography.hazmat.primitives import serialization

    private_key = serialization.load_pem_private_key(
        pem_bytes,
        password=None,  # No password on the key
        backend=default_backend()
    )

    return private_key.private_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption()
    )


def _read_private_key(config: SnowflakeConfig) -> Optional[bytes]:
    """Key bytes from the base64 setting or the key file, whichever is set."""
    if config.private_key_base64:
        return _load_private_key(base64.b64decode(config.private_key_base64))
    if config.private_key_path:
        with open(config.private_key_path, 'rb') as key_file:
            return _load_private_key(key_file.read())
    return None


@contextmanager
def get_snowflake_connection(config: SnowflakeConfig) -> Generator[SnowflakeConnection, None, None]:
    """
    Provide Snowflake connection with automatic cleanup.

    Supports both password and key-pair authentication:
    - If a private key (base64 or path) is set, uses key-pair auth
    - Otherwise, uses password auth

    Usage:
        with get_snowflake_connection(config) as conn:
            cursor = conn.cursor()
            # do work
            conn.commit()
    """
    try:
        import snowflake.connector
    except ImportError:
        raise ImportError(
            "snowflake-connector-python is required. "
            "Install with: pip install snowflake-connector-python"
        )

    conn = None
    try:
        connect_params = {
            'account': config.account,
            'user': config.user,
            'database': config.database,
            'schema': config.schema,
            'warehouse': config.warehouse,
            'role': config.role,
            'client_session_keep_alive': True,
        }

        private_key = _read_private_key(config)
        if private_key:
            logger.info("Using key-pair authentication for Snowflake")
            connect_params['private_key'] = private_key
        elif config.password:
            logger.info("Using password authentication for Snowflake")
            connect_params['password'] = config.password
        else:
            raise SnowflakeConnectionError(
                "Either password or a private key must be provided"
            )

        conn = snowflake.connector.connect(**connect_params)

        logger.debug(
            "Established Snowflake connection",
            extra={
                "account": config.account,
                "database": config.database,
                "schema": config.schema,
            }
        )

    except snowflake.connector.errors.DatabaseError as e:
        logger.error(
            "Snowflake connection failed",
            extra={"error": str(e), "account": config.account}
        )
        raise SnowflakeConnectionError(f"Database connection failed: {e}")

    try:
        yield conn
    finally:
        try:
            conn.close()
            logger.debug("Closed Snowflake connection")
        except Exception as e:
            logger.warning(
                "Error closing Snowflake connection",
                extra={"error": str(e)}
            )


# ---------------------------------------------------------------------------
# Mock Connection for Local Development
# ---------------------------------------------------------------------------

_VIDEO_FIELDS = (
    'video_id', 'user_id', 'title', 'description',
    'created_at', 'updated_at', 'video_url', 'thumbnail_url',
)


class MockSnowflakeCursor:
    """
    Mock Snowflake cursor for testing.

    Implements just enough of the cursor interface to support
    VideoRepository operations without a real database: INSERT, UPDATE
    and the two SELECT shapes it issues, recognized by pattern matching.
    """

    def __init__(self, storage: dict) -> None:
        self._storage = storage
        self._results: list = []
        self._rowcount: int = 0

    def execute(self, query: str, params: Optional[tuple] = None) -> 'MockSnowflakeCursor':
        """Execute a query against mock storage."""
        logger.debug(
            "Mock cursor execute",
            extra={"query": query[:100], "params": params}
        )

        query_upper = " ".join(query.upper().split())
        self._results = []
        self._rowcount = 0

        if query_upper.startswith('INSERT INTO VIDEOS'):
            self._handle_insert(params)
        elif query_upper.startswith('UPDATE VIDEOS'):
            self._handle_update(params)
        elif query_upper.startswith('SELECT') and 'FROM VIDEOS' in query_upper:
            self._handle_select(query_upper, params)

        return self

    def _handle_insert(self, params: Optional[tuple]) -> None:
        if not params:
            return
        row = dict(zip(_VIDEO_FIELDS, params))
        self._storage['videos'][row['video_id']] = row
        self._rowcount = 1

    def _handle_update(self, params: Optional[tuple]) -> None:
        if not params:
            return
        title, description, updated_at, video_url, thumbnail_url, video_id = params
        row = self._storage['videos'].get(video_id)
        if row is None:
            return
        row.update(
            title=title,
            description=description,
            updated_at=updated_at,
            video_url=video_url,
            thumbnail_url=thumbnail_url,
        )
        self._rowcount = 1

    def _handle_select(self, query: str, params: Optional[tuple]) -> None:
        if not params:
            return

        if 'WHERE VIDEO_ID' in query:
            row = self._storage['videos'].get(params[0])
            rows = [row] if row else []
        elif 'WHERE USER_ID' in query:
            rows = [
                row for row in self._storage['videos'].values()
                if row['user_id'] == params[0]
            ]
            rows.sort(key=lambda r: r['created_at'], reverse=True)
            rows = rows[:params[1]] if len(params) > 1 else rows
        else:
            rows = []

        self._results = [tuple(row[f] for f in _VIDEO_FIELDS) for row in rows]

    def fetchone(self):
        """Fetch one row from results."""
        if not self._results:
            return None
        return self._results[0]

    def fetchall(self) -> list:
        """Fetch all rows from results."""
        return self._results

    def close(self) -> None:
        """Close cursor (no-op for mock)."""
        pass

    @property
    def rowcount(self) -> int:
        """Return number of rows affected."""
        return self._rowcount


class MockSnowflakeConnection:
    """
    Mock Snowflake connection for local development.

    Stores data in memory using a simple dictionary structure.
    This enables testing the full API without a real database.
    """

    def __init__(self) -> None:
        # In-memory storage: {table_name: {id: row_dict}}
        self._storage: dict[str, dict[str, dict]] = {
            'videos': {},
        }

        logger.info("Initialized mock Snowflake connection (in-memory)")

    def cursor(self) -> MockSnowflakeCursor:
        """Create a mock cursor."""
        return MockSnowflakeCursor(self._storage)

    def commit(self) -> None:
        """Commit transaction (no-op for mock, always auto-commits)."""
        logger.debug("Mock connection commit")

    def close(self) -> None:
        """Close connection (no-op for mock)."""
        logger.debug("Mock connection close")

    # Helper methods for testing
    def _get_video_row(self, video_id: str) -> Optional[dict]:
        """Get raw video row (for test assertions)."""
        return self._storage['videos'].get(video_id)

    def _clear(self) -> None:
        """Clear all mock storage (for test cleanup)."""
        for table in self._storage.values():
            table.clear()


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

@contextmanager
def create_snowflake_connection(
    config: Optional[SnowflakeConfig] = None,
    mock_mode: bool = False,
) -> Generator[SnowflakeConnection, None, None]:
    """
    Create Snowflake connection based on configuration.

    Args:
        config: Snowflake configuration (required if not mock_mode)
        mock_mode: If True, return mock connection for testing

    Yields:
        SnowflakeConnection implementation (real or mock)
    """
    if mock_mode:
        conn = MockSnowflakeConnection()
        try:
            yield conn
        finally:
            conn.close()
    else:
        if config is None:
            raise ValueError("config is required when not in mock mode")

        with get_snowflake_connection(config) as conn:
            yield conn
