"""Settings loaded from environment variables (+ optional .env).

All knobs live on one frozen Settings object built by load_settings().
The Notion property map is an ordered table validated at startup.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Tuple

from dotenv import load_dotenv

from .errors import ConfigError

# Logical name -> Notion property name, in lookup order
DEFAULT_PROPERTY_MAP: Tuple[Tuple[str, str], ...] = (
    ('title', 'Task'),
    ('status', 'Status'),
    ('date', 'Date'),
    ('category', 'Class'),
    ('type', 'Type'),
    ('priority', 'Priority'),
    ('description', 'Description'),
    ('location', 'Location'),
)

REQUIRED_PROPERTIES = ('title', 'status', 'date')
KNOWN_PROPERTIES = tuple(name for name, _ in DEFAULT_PROPERTY_MAP)


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v.strip()


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}")


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def parse_property_map(raw: str) -> Tuple[Tuple[str, str], ...]:
    """Overlay `logical=Physical;...` overrides onto the default table.

    Overrides keep the default position of known names; unknown names are
    appended so validation can reject them.
    """
    table = dict(DEFAULT_PROPERTY_MAP)
    order = list(KNOWN_PROPERTIES)
    for chunk in raw.split(';'):
        if not chunk.strip():
            continue
        if '=' not in chunk:
            raise ConfigError(f"Invalid NOTION_PROPERTY_MAP entry: {chunk!r}")
        logical, physical = (part.strip() for part in chunk.split('=', 1))
        if logical not in table:
            order.append(logical)
        table[logical] = physical
    return tuple((name, table[name]) for name in order)


def validate_property_map(property_map: Tuple[Tuple[str, str], ...]) -> Dict[str, str]:
    """Check the ordered map and return it as a lookup dict.

    Raises:
        ConfigError: unknown logical name, duplicate entry, or a required
            logical name without a Notion property
    """
    seen: Dict[str, str] = {}
    for logical, physical in property_map:
        if logical not in KNOWN_PROPERTIES:
            raise ConfigError(f"Unknown logical property name: {logical!r}")
        if logical in seen:
            raise ConfigError(f"Logical property {logical!r} is mapped twice")
        seen[logical] = physical

    for logical in REQUIRED_PROPERTIES:
        if not seen.get(logical):
            raise ConfigError(f"Required property {logical!r} has no Notion mapping")
    return seen


@dataclass(frozen=True)
class Settings:
    # Notion
    notion_token: str
    notion_database_id: str
    notion_version: str
    notion_status_property_type: str
    property_map: Tuple[Tuple[str, str], ...]

    # Google Calendar
    calendar_id: str
    google_service_key_file: Optional[str]
    google_credentials_path: str
    google_token_path: str
    calendar_call_delay: float
    calendar_max_retries: int

    # Sync policy
    archive_after_days: int
    lookback_days: int
    adopt_conflicting_events: bool
    sync_interval_minutes: int

    # Local state / logging / notifications
    database_path: Path
    log_path: Optional[Path]
    log_filename: str
    log_level: str
    slack_webhook_url: Optional[str]

    @property
    def database_url(self) -> str:
        return f"sqlite:///{self.database_path}"


def load_settings(env_file: Optional[str] = None) -> Settings:
    """Build Settings from the environment and validate them.

    Raises:
        ConfigError: a required variable is missing or a value is invalid
    """
    load_dotenv(env_file, override=False)

    missing = [name for name in ('NOTION_TOKEN', 'NOTION_DATABASE_ID', 'GOOGLE_CALENDAR_ID')
               if not _env(name)]
    if missing:
        raise ConfigError(f"Missing required settings: {', '.join(missing)}")

    status_type = _env('NOTION_STATUS_PROPERTY_TYPE', 'status').lower()
    if status_type not in ('status', 'select'):
        raise ConfigError(f"NOTION_STATUS_PROPERTY_TYPE must be 'status' or 'select', got {status_type!r}")

    property_map = parse_property_map(_env('NOTION_PROPERTY_MAP'))
    validate_property_map(property_map)

    log_path = _env('LOG_PATH')
    return Settings(
        notion_token=_env('NOTION_TOKEN'),
        notion_database_id=_env('NOTION_DATABASE_ID'),
        notion_version=_env('NOTION_VERSION', '2022-06-28'),
        notion_status_property_type=status_type,
        property_map=property_map,
        calendar_id=_env('GOOGLE_CALENDAR_ID'),
        google_service_key_file=_env('GOOGLE_SERVICE_KEY_FILE') or None,
        google_credentials_path=_env('GOOGLE_CREDENTIALS_PATH', 'credentials.json'),
        google_token_path=_env('GOOGLE_TOKEN_PATH', 'token.pickle'),
        calendar_call_delay=_env_int('CALENDAR_CALL_DELAY_MS', 50) / 1000.0,
        calendar_max_retries=max(1, _env_int('CALENDAR_MAX_RETRIES', 3)),
        archive_after_days=_env_int('ARCHIVE_AFTER_DAYS', 3),
        lookback_days=_env_int('SYNC_LOOKBACK_DAYS', 30),
        adopt_conflicting_events=_env_bool('ADOPT_CONFLICTING_EVENTS', False),
        sync_interval_minutes=max(1, _env_int('SYNC_INTERVAL_MINUTES', 15)),
        database_path=Path(_env('DATABASE_PATH', 'database.sqlite')).expanduser(),
        log_path=Path(log_path).expanduser() if log_path else None,
        log_filename=_env('LOG_FILENAME', 'sync.log'),
        log_level=_env('LOG_LEVEL', 'INFO').upper(),
        slack_webhook_url=_env('SLACK_WEBHOOK_URL') or None,
    )
