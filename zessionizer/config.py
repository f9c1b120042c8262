"""
zessionizer - Configuration

Read once at startup from a key/value mapping (plugin-style configuration)
or from ZESSIONIZER_* environment variables. Every field is lenient: an
unparseable value logs a warning and falls back to its documented default,
so a bad configuration never blocks startup.
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

log = logging.getLogger(__name__)

# =============================================================================
# Defaults
# =============================================================================

DEFAULT_SCAN_PATHS = ["~/Projects"]
DEFAULT_SCAN_DEPTH = 4
DEFAULT_DATA_DIR = "~/.local/share/zessionizer"
DEFAULT_REDIS_URL = "redis://localhost:6379/0"
DEFAULT_HALF_LIFE_HOURS = 168.0   # one week
DEFAULT_DEBOUNCE_SECONDS = 1.5
DEFAULT_API_PORT = 9996
STORE_BACKENDS = ("json", "redis")
ENV_PREFIX = "ZESSIONIZER_"

STORE_FILENAME = "projects.json"


class Config(BaseModel):
    """Startup configuration; immutable once built."""

    model_config = ConfigDict(frozen=True)

    scan_paths: List[str] = Field(default_factory=lambda: list(DEFAULT_SCAN_PATHS))
    scan_depth: int = DEFAULT_SCAN_DEPTH
    theme: Optional[str] = None
    data_dir: str = DEFAULT_DATA_DIR
    store_backend: str = "json"
    redis_url: str = DEFAULT_REDIS_URL
    half_life_hours: float = DEFAULT_HALF_LIFE_HOURS
    debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS
    log_level: str = "WARNING"
    api_port: int = DEFAULT_API_PORT

    # =========================================================================
    # Lenient field parsing
    # =========================================================================

    @field_validator("scan_paths", mode="before")
    @classmethod
    def _split_scan_paths(cls, value: Any) -> List[str]:
        if isinstance(value, str):
            value = value.split(",")
        if not isinstance(value, (list, tuple)):
            log.warning("scan_paths %r is not a list, using defaults", value)
            return list(DEFAULT_SCAN_PATHS)
        paths = [str(p).strip() for p in value if str(p).strip()]
        if not paths:
            log.warning("scan_paths is empty, using defaults")
            return list(DEFAULT_SCAN_PATHS)
        return paths

    @field_validator("scan_depth", mode="before")
    @classmethod
    def _parse_depth(cls, value: Any) -> int:
        return _positive(value, int, DEFAULT_SCAN_DEPTH, "scan_depth")

    @field_validator("half_life_hours", mode="before")
    @classmethod
    def _parse_half_life(cls, value: Any) -> float:
        return _positive(value, float, DEFAULT_HALF_LIFE_HOURS, "half_life_hours")

    @field_validator("debounce_seconds", mode="before")
    @classmethod
    def _parse_debounce(cls, value: Any) -> float:
        return _positive(value, float, DEFAULT_DEBOUNCE_SECONDS, "debounce_seconds")

    @field_validator("api_port", mode="before")
    @classmethod
    def _parse_port(cls, value: Any) -> int:
        port = _positive(value, int, DEFAULT_API_PORT, "api_port")
        if port > 65535:
            log.warning("api_port %r out of range, using %d", value, DEFAULT_API_PORT)
            return DEFAULT_API_PORT
        return port

    @field_validator("store_backend", mode="before")
    @classmethod
    def _parse_backend(cls, value: Any) -> str:
        backend = str(value).strip().lower()
        if backend not in STORE_BACKENDS:
            log.warning("unknown store_backend %r, using json", value)
            return "json"
        return backend

    @field_validator("theme", mode="before")
    @classmethod
    def _parse_theme(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        return str(value).strip() or None

    # =========================================================================
    # Construction
    # =========================================================================

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "Config":
        """Build from plugin-style key/values; unknown keys are ignored."""
        values: Dict[str, Any] = {}
        for key, value in mapping.items():
            if key == "trace_level":
                key = "log_level"
            if key in cls.model_fields and value is not None:
                values[key] = value
        try:
            return cls(**values)
        except ValidationError as e:
            log.warning("invalid configuration, using defaults: %s", e)
            return cls()

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Config":
        """Build from ZESSIONIZER_* environment variables."""
        environ = os.environ if environ is None else environ
        mapping = {
            key[len(ENV_PREFIX):].lower(): value
            for key, value in environ.items()
            if key.startswith(ENV_PREFIX)
        }
        return cls.from_mapping(mapping)

    def merged(self, overrides: Mapping[str, Any]) -> "Config":
        """Return a copy with the non-None overrides applied and re-validated."""
        values = self.model_dump()
        values.update({k: v for k, v in overrides.items() if v is not None})
        return type(self).from_mapping(values)

    # =========================================================================
    # Derived paths
    # =========================================================================

    @property
    def roots(self) -> List[Path]:
        """Scan roots expanded and canonicalized, duplicates removed."""
        seen = []
        for raw in self.scan_paths:
            root = expand_path(raw)
            if root not in seen:
                seen.append(root)
        return seen

    @property
    def store_path(self) -> Path:
        return expand_path(self.data_dir) / STORE_FILENAME

    @property
    def half_life_seconds(self) -> float:
        return self.half_life_hours * 3600.0


def expand_path(raw: str) -> Path:
    """Expand `~` and resolve to a canonical absolute path."""
    return Path(os.path.expanduser(str(raw).strip())).resolve()


def _positive(value: Any, cast, default, name: str):
    try:
        parsed = cast(str(value).strip()) if isinstance(value, str) else cast(value)
    except (TypeError, ValueError):
        log.warning("%s %r is not a number, using %s", name, value, default)
        return default
    if isinstance(value, bool) or parsed <= 0:
        log.warning("%s %r must be positive, using %s", name, value, default)
        return default
    return parsed
