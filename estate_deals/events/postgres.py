"""PostgreSQL audit sink: one row per domain event."""

import json
import logging
import re

from estate_deals.config import PostgresConfig
from estate_deals.events.serialization import serialize_value
from estate_deals.exceptions import ConfigurationError
from estate_deals.models.base import Event

logger = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class PostgresEventSink:
    """Append events to an audit table.

    Overrides, approvals and payments must stay traceable after the fact, so
    every event is committed as its own row.
    """

    def __init__(self, config: PostgresConfig | str, table: str | None = None) -> None:
        """Initialize the sink and create the audit table if needed.

        Parameters
        ----------
        config : PostgresConfig | str
            Connection configuration or a connection string.
        table : str | None
            Audit table name; defaults to ``config.events_table``.
        """
        import psycopg

        if isinstance(config, str):
            conninfo = config
            table = table or PostgresConfig().events_table
        else:
            conninfo = config.connection_string
            table = table or config.events_table

        if not _IDENTIFIER.match(table):
            raise ConfigurationError(f"Invalid table name: {table!r}")

        self.table = table
        self.conn = psycopg.connect(conninfo)
        self._count = 0
        self.create_table()

    def create_table(self) -> None:
        with self.conn.cursor() as cur:
            cur.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {self.table} (
                    event_id TEXT PRIMARY KEY,
                    event_type TEXT NOT NULL,
                    event_time TIMESTAMP NOT NULL,
                    source TEXT NOT NULL,
                    subject TEXT NOT NULL,
                    data JSONB NOT NULL,
                    metadata JSONB NOT NULL
                )
                """  # noqa: S608
            )
        self.conn.commit()

    def send(self, event: Event) -> None:
        with self.conn.cursor() as cur:
            cur.execute(
                f"INSERT INTO {self.table} "  # noqa: S608
                "(event_id, event_type, event_time, source, subject, data, metadata) "
                "VALUES (%s, %s, %s, %s, %s, %s, %s)",
                (
                    event.event_id,
                    event.event_type,
                    event.event_time,
                    event.source,
                    event.subject,
                    json.dumps(serialize_value(event.data)),
                    json.dumps(serialize_value(event.metadata)),
                ),
            )
        self.conn.commit()
        self._count += 1

    def close(self) -> None:
        logger.info("PostgreSQL sink closed: %d events written to %s", self._count, self.table)
        self.conn.close()
