"""
Configuration for the offline core.

Settings come from three layers, later layers winning:

1. dataclass defaults below
2. a TOML file laid out like the app's secrets file::

       [supabase]
       url = "https://your-project.supabase.co"
       key = "your-anon-key"

       [offline]
       db_path = "local_data/localelore.db"
       cache_max_entries = 500

3. environment variables (LORE_DB_PATH, SUPABASE_URL, SUPABASE_KEY, ...)
"""

from __future__ import annotations
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import toml

from lore_core.errors import ConfigurationError


DEFAULT_DB_PATH = Path(__file__).parent.parent.parent / "local_data" / "localelore.db"
DEFAULT_CONFIG_PATH = Path(__file__).parent.parent.parent / "local_data" / "settings.toml"

# Environment variable -> settings field
ENV_OVERRIDES = {
    "LORE_DB_PATH": "db_path",
    "LORE_LOG_LEVEL": "log_level",
    "LORE_MONITOR_CONNECTIVITY": "monitor_connectivity",
    "SUPABASE_URL": "supabase_url",
    "SUPABASE_KEY": "supabase_key",
}


@dataclass
class OfflineSettings:
    """Configuration for the offline queue, sync engine and local cache."""

    # ==================== STORAGE ====================
    db_path: Path = DEFAULT_DB_PATH

    # ==================== CACHE ====================
    cache_max_entries: int = 500     # 0 disables the size cap
    cache_max_age_days: int = 30     # Used by GeoCache.cleanup_expired
    featured_limit: int = 5
    recent_limit: int = 5

    # ==================== CONNECTIVITY ====================
    monitor_connectivity: bool = True
    probe_hosts: List[str] = field(default_factory=lambda: [
        "8.8.8.8:53",         # Google DNS
        "1.1.1.1:53",         # Cloudflare DNS
        "208.67.222.222:53",  # OpenDNS
    ])
    probe_timeout: float = 5.0
    check_interval_online: float = 30.0
    check_interval_offline: float = 10.0

    # ==================== REMOTE SERVICE ====================
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    idempotency_column: Optional[str] = None

    # ==================== LOGGING ====================
    log_level: str = "INFO"
    log_to_file: bool = False

    def __post_init__(self):
        self.db_path = Path(self.db_path)
        for name in ("cache_max_entries", "cache_max_age_days", "featured_limit", "recent_limit"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ConfigurationError(
                    f"{name} must be a non-negative integer",
                    config_key=name,
                    expected_type="int",
                )
        for name in ("probe_timeout", "check_interval_online", "check_interval_offline"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
                raise ConfigurationError(
                    f"{name} must be a positive number",
                    config_key=name,
                    expected_type="float",
                )
        for host in self.probe_hosts:
            parse_host(host)

    @property
    def probe_addresses(self) -> List[tuple]:
        """Probe hosts as (host, port) tuples."""
        return [parse_host(host) for host in self.probe_hosts]

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> OfflineSettings:
        """Build settings from a flat mapping, rejecting unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(values) - known)
        if unknown:
            raise ConfigurationError(
                f"Unknown offline setting(s): {', '.join(unknown)}",
                config_key=unknown[0],
            )
        return cls(**dict(values))


def parse_host(value: str) -> tuple:
    """Parse a "host:port" string."""
    host, sep, port = str(value).rpartition(":")
    if not sep or not host or not port.isdigit():
        raise ConfigurationError(
            f"Probe host must look like 'host:port', got {value!r}",
            config_key="probe_hosts",
        )
    return host, int(port)


def _coerce_bool(name: str, raw: str) -> bool:
    lowered = raw.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    raise ConfigurationError(
        f"Environment value for {name} is not a boolean: {raw!r}",
        config_key=name,
        expected_type="bool",
    )


def _read_file(path: Path) -> Dict[str, Any]:
    """Flatten the [offline] and [supabase] sections of a TOML file."""
    try:
        data = toml.load(path)
    except (toml.TomlDecodeError, OSError) as e:
        raise ConfigurationError(
            f"Could not read settings file {path}: {e}",
            config_key="config_path",
        ) from e

    values: Dict[str, Any] = dict(data.get("offline", {}))
    supabase = data.get("supabase", {})
    if "url" in supabase:
        values["supabase_url"] = supabase["url"]
    if "key" in supabase:
        values["supabase_key"] = supabase["key"]
    return values


def load_settings(
    path: Optional[Path] = None,
    env: Optional[Mapping[str, str]] = None,
) -> OfflineSettings:
    """
    Load settings from file and environment.

    Args:
        path: TOML file; defaults to $LORE_CONFIG or local_data/settings.toml.
              A missing default file is fine, a missing explicit file is not.
        env: Environment mapping (defaults to os.environ)

    Returns:
        OfflineSettings

    Raises:
        ConfigurationError: on unreadable files or invalid values
    """
    env = os.environ if env is None else env

    explicit = path is not None or "LORE_CONFIG" in env
    config_path = Path(path or env.get("LORE_CONFIG") or DEFAULT_CONFIG_PATH)

    values: Dict[str, Any] = {}
    if config_path.exists():
        values.update(_read_file(config_path))
    elif explicit:
        raise ConfigurationError(
            f"Settings file not found: {config_path}",
            config_key="config_path",
        )

    for env_name, field_name in ENV_OVERRIDES.items():
        raw = env.get(env_name)
        if raw is None or raw == "":
            continue
        if field_name == "monitor_connectivity":
            values[field_name] = _coerce_bool(env_name, raw)
        else:
            values[field_name] = raw

    try:
        return OfflineSettings.from_mapping(values)
    except TypeError as e:
        raise ConfigurationError(f"Invalid offline settings: {e}") from e
