"""Database schema DDL. All tables use CREATE IF NOT EXISTS for idempotency."""

from eventledger.config import Settings
from eventledger.db.filters import field_expression

_NOW = "(strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))"


def build_schema_sql(settings: Settings) -> str:
    """Render the events and projections DDL for the configured table names."""
    events = settings.events_table
    projections = settings.projections_table

    statements = [
        f"""
CREATE TABLE IF NOT EXISTS {events} (
    id TEXT PRIMARY KEY NOT NULL,
    type TEXT NOT NULL,
    data TEXT NOT NULL,
    created_at TEXT NOT NULL DEFAULT {_NOW},
    updated_at TEXT NOT NULL DEFAULT {_NOW}
);

CREATE INDEX IF NOT EXISTS {events}_type_idx ON {events}(type);

CREATE TABLE IF NOT EXISTS {projections} (
    type TEXT NOT NULL,
    id TEXT NOT NULL,
    data TEXT NOT NULL,
    latest_event_id TEXT NOT NULL,
    revision INTEGER NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL DEFAULT {_NOW},
    updated_at TEXT NOT NULL DEFAULT {_NOW},
    PRIMARY KEY (type, id)
);

CREATE INDEX IF NOT EXISTS {projections}_type_idx ON {projections}(type);
"""
    ]

    for field in settings.event_data_indexes:
        statements.append(
            f"CREATE INDEX IF NOT EXISTS {events}_data_{field}_idx "
            f"ON {events}({field_expression('data', field)});"
        )
    for field in settings.projection_data_indexes:
        statements.append(
            f"CREATE INDEX IF NOT EXISTS {projections}_data_{field}_idx "
            f"ON {projections}({field_expression('data', field)});"
        )

    return "\n".join(statements)

