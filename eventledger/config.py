"""Store configuration: database location, table names, data indexes.

Loaded from EVENTLEDGER_* environment variables (a .env file is read first,
secrets stay out of the shell profile) or from a YAML file.
"""

import os
import re
from pathlib import Path

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

ENV_PREFIX = "EVENTLEDGER_"


def is_identifier(value: str) -> bool:
    return _IDENTIFIER_RE.match(value) is not None


def validate_identifier(value: str) -> str:
    """Reject anything that cannot be spliced into SQL as a bare identifier."""
    if not is_identifier(value):
        raise ValueError(f"Invalid identifier: {value!r}")
    return value


class Settings(BaseModel):
    database_path: str = "eventledger.db"
    events_table: str = "events"
    projections_table: str = "projections"
    event_data_indexes: list[str] = Field(default_factory=list)
    projection_data_indexes: list[str] = Field(default_factory=list)
    busy_timeout_ms: int = 5000

    @field_validator("events_table", "projections_table")
    @classmethod
    def _check_table(cls, value: str) -> str:
        return validate_identifier(value)

    @field_validator("event_data_indexes", "projection_data_indexes")
    @classmethod
    def _check_index_fields(cls, value: list[str]) -> list[str]:
        return [validate_identifier(field) for field in value]

    @classmethod
    def from_env(cls, env_file: str | Path | None = None) -> "Settings":
        """Build settings from EVENTLEDGER_* variables.

        List-valued settings are comma separated, e.g.
        EVENTLEDGER_EVENT_DATA_INDEXES=listId,itemId
        """
        load_dotenv(env_file)
        values: dict[str, object] = {}
        for name, field in cls.model_fields.items():
            raw = os.environ.get(ENV_PREFIX + name.upper())
            if raw is None:
                continue
            if field.annotation == list[str]:
                values[name] = [part.strip() for part in raw.split(",") if part.strip()]
            else:
                values[name] = raw
        return cls.model_validate(values)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Settings":
        """Build settings from a YAML mapping. An empty file yields defaults."""
        with open(path) as f:
            raw = yaml.safe_load(f) or {}
        return cls.model_validate(raw)
