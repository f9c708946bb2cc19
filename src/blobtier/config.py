"""Run configuration.

Settings are merged from layered sources, highest priority last:

    FileConfigSource (YAML, TOML or JSON)  <  EnvConfigSource (BLOBTIER_*)  <  CLI overrides

and validated into an immutable :class:`~blobtier.models.RunContext`.

Example:
    BLOBTIER_ACCOUNT_NAME=myaccount
    BLOBTIER_CONTAINER=backups
    BLOBTIER_START_TIME=2024-04-01

    >>> settings = load_settings("blobtier.yaml", overrides={"dry_run": True})
    >>> context = settings.to_run_context()
"""

from __future__ import annotations

import json
import os
import tomllib
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, fields
from datetime import date, datetime, time, timezone
from pathlib import Path
from typing import Any, Iterable, Mapping

import yaml

from blobtier.errors import ConfigurationError
from blobtier.models import MigrationRequest, RunContext, TierFilterCriteria, parse_timestamp
from blobtier.types import AccessTier, RehydratePriority


# =============================================================================
# Sources
# =============================================================================


class ConfigSource(ABC):
    """Abstract configuration source."""

    @abstractmethod
    def load(self) -> dict[str, Any]:
        """Load configuration values."""
        pass


class EnvConfigSource(ConfigSource):
    """Environment variable configuration source.

    ``BLOBTIER_ACCOUNT_NAME=acct`` produces ``{"account_name": "acct"}``.
    Values are left as strings; :class:`MigrationSettings` converts them.
    """

    def __init__(
        self,
        prefix: str = "BLOBTIER",
        environ: Mapping[str, str] | None = None,
        keys: Iterable[str] | None = None,
    ) -> None:
        self._prefix = f"{prefix}_"
        self._environ = environ
        self._keys = set(keys) if keys is not None else None

    def load(self) -> dict[str, Any]:
        environ = os.environ if self._environ is None else self._environ
        values = {
            key[len(self._prefix) :].lower(): value
            for key, value in environ.items()
            if key.startswith(self._prefix)
        }
        if self._keys is not None:
            values = {k: v for k, v in values.items() if k in self._keys}
        return values


class FileConfigSource(ConfigSource):
    """File-based configuration source.

    Supports YAML, JSON, and TOML formats, detected from the file extension.
    A top-level ``blobtier`` table is used when present.
    """

    def __init__(self, path: str | Path, required: bool = True) -> None:
        self._path = Path(path)
        self._required = required

    def load(self) -> dict[str, Any]:
        if not self._path.exists():
            if self._required:
                raise ConfigurationError(f"Configuration file not found: {self._path}")
            return {}

        suffix = self._path.suffix.lower()
        try:
            content = self._path.read_text(encoding="utf-8")
            if suffix in (".yaml", ".yml"):
                data = yaml.safe_load(content) or {}
            elif suffix == ".json":
                data = json.loads(content)
            elif suffix == ".toml":
                data = tomllib.loads(content)
            else:
                raise ConfigurationError(f"Unsupported configuration format: {suffix}")
        except (OSError, yaml.YAMLError, json.JSONDecodeError, tomllib.TOMLDecodeError) as e:
            raise ConfigurationError(f"Failed to load {self._path}: {e}")

        if not isinstance(data, dict):
            raise ConfigurationError(f"Configuration in {self._path} must be a mapping")
        section = data.get("blobtier", data)
        if not isinstance(section, dict):
            raise ConfigurationError(
                f"The blobtier section in {self._path} must be a mapping", key="blobtier"
            )
        return dict(section)


# =============================================================================
# Value conversion
# =============================================================================


_TRUE = ("true", "yes", "1", "on")
_FALSE = ("false", "no", "0", "off")


def _to_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    lowered = str(value).strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ConfigurationError(f"{key} must be a boolean, got {value!r}", key=key)


def _to_int(key: str, value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{key} must be an integer, got {value!r}", key=key)


def parse_window_bound(value: Any, end_of_day: bool = False) -> datetime:
    """Parse a window boundary.

    A date without a time covers the whole day: it starts at midnight for the
    start bound and ends at the last microsecond for the end bound. Naive
    values are UTC.
    """
    if isinstance(value, datetime):
        return parse_timestamp(value)
    if isinstance(value, date):
        moment = time.max if end_of_day else time.min
        return datetime.combine(value, moment, tzinfo=timezone.utc)

    text = str(value).strip()
    if len(text) == 10:
        try:
            return parse_window_bound(date.fromisoformat(text), end_of_day)
        except ValueError:
            pass
    return parse_timestamp(text)


# =============================================================================
# Settings
# =============================================================================


@dataclass
class MigrationSettings:
    """Merged, typed settings for one run.

    Attributes:
        account_name: Storage account name.
        container: Container to migrate.
        tenant_id: Tenant the session must be scoped to.
        subscription_id: Subscription the session must be scoped to.
        tier_filter: Tier candidates must currently be in.
        target_tier: Tier to move candidates to.
        start_time: Window start (inclusive).
        end_time: Window end (inclusive).
        priority: Rehydrate priority for blobs leaving Archive.
        prefix: Blob name prefix to list.
        dry_run: Stop after the discovery audit.
        max_workers: Concurrent tier changes.
        assume_yes: Answer the confirmation prompt with "y".
        interactive_login: Use browser login rather than DefaultAzureCredential.
        connection_string: Storage connection string (skips the session credential).
        include_versions: List and migrate individual blob versions.
        audit_dir: Directory for audit artifacts.
        log_dir: Directory for the log file.
        log_level: Console log level.
    """

    account_name: str = ""
    container: str = ""
    tenant_id: str = ""
    subscription_id: str = ""
    tier_filter: AccessTier = AccessTier.ARCHIVE
    target_tier: AccessTier = AccessTier.HOT
    start_time: datetime | None = None
    end_time: datetime | None = None
    priority: RehydratePriority = RehydratePriority.STANDARD
    prefix: str | None = None
    dry_run: bool = False
    max_workers: int = 1
    assume_yes: bool = False
    interactive_login: bool = True
    connection_string: str | None = None
    include_versions: bool = False
    audit_dir: Path = field(default_factory=lambda: Path("audit"))
    log_dir: Path = field(default_factory=lambda: Path("logs"))
    log_level: str = "INFO"

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "MigrationSettings":
        """Build settings from a merged mapping of raw values.

        Raises:
            ConfigurationError: On unknown keys or unconvertible values.
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(k for k in values if k not in known)
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {', '.join(unknown)}")

        settings = cls()
        for key, value in values.items():
            if value is None:
                continue
            try:
                setattr(settings, key, cls._convert(key, value))
            except ValueError as e:
                raise ConfigurationError(f"Invalid value for {key}: {e}", key=key)
        return settings

    @staticmethod
    def _convert(key: str, value: Any) -> Any:
        if key in ("tier_filter", "target_tier"):
            return value if isinstance(value, AccessTier) else AccessTier.parse(str(value))
        if key == "priority":
            return value if isinstance(value, RehydratePriority) else RehydratePriority.parse(str(value))
        if key == "start_time":
            return parse_window_bound(value)
        if key == "end_time":
            return parse_window_bound(value, end_of_day=True)
        if key in ("dry_run", "assume_yes", "interactive_login", "include_versions"):
            return _to_bool(key, value)
        if key == "max_workers":
            return _to_int(key, value)
        if key in ("audit_dir", "log_dir"):
            return Path(value)
        if key == "log_level":
            return str(value).upper()
        return str(value)

    def to_run_context(self) -> RunContext:
        """Validate and freeze into a RunContext.

        Raises:
            ConfigurationError: If a required value is missing or inconsistent.
        """
        required = ("account_name", "container", "tenant_id", "subscription_id")
        missing = [name for name in required if not getattr(self, name)]
        if self.start_time is None:
            missing.append("start_time")
        if self.end_time is None:
            missing.append("end_time")
        if missing:
            raise ConfigurationError(
                f"Missing required configuration: {', '.join(missing)}", key=missing[0]
            )

        try:
            return RunContext(
                account_name=self.account_name,
                container=self.container,
                tenant_id=self.tenant_id,
                subscription_id=self.subscription_id,
                criteria=TierFilterCriteria(
                    tier_filter=self.tier_filter,
                    start_time=self.start_time,  # type: ignore[arg-type]
                    end_time=self.end_time,  # type: ignore[arg-type]
                ),
                request=MigrationRequest(target_tier=self.target_tier, priority=self.priority),
                prefix=self.prefix or None,
                dry_run=self.dry_run,
                max_workers=self.max_workers,
            )
        except ValueError as e:
            raise ConfigurationError(str(e))


def load_settings(
    path: str | Path | None = None,
    overrides: Mapping[str, Any] | None = None,
    environ: Mapping[str, str] | None = None,
) -> MigrationSettings:
    """Load settings from file, environment and overrides.

    Args:
        path: Optional configuration file.
        overrides: Highest-priority values (CLI options); None values are ignored.
        environ: Environment to read instead of ``os.environ``.

    Returns:
        Merged settings.
    """
    sources: list[ConfigSource] = []
    if path is not None:
        sources.append(FileConfigSource(path))
    known = [f.name for f in fields(MigrationSettings)]
    sources.append(EnvConfigSource(environ=environ, keys=known))

    merged: dict[str, Any] = {}
    for source in sources:
        merged.update(source.load())
    if overrides:
        merged.update({k: v for k, v in overrides.items() if v is not None})

    return MigrationSettings.from_mapping(merged)
