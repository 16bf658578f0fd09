"""Load, validate, and hot-reload the fitsync sync configuration.

The config lives in ``sync_config.yaml`` alongside this module.  At startup
it is loaded once and cached.  Call ``reload_sync_config()`` to re-read from
disk after an edit — no restart required for newly built coordinators.

Usage::

    from src.fitsync.config_loader import get_sync_config

    config = get_sync_config()
    config.interval_seconds                       # 900
    config.metric(MetricKind.HEART_RATE).bucket   # Bucketing(interval=1, unit='day')
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path

from src.fitsync.base import BUCKET_UNIT_MS, Bucketing, MetricKind

logger = logging.getLogger("fitsync.config")

# Path to the YAML file sitting next to this module
_CONFIG_PATH = Path(__file__).parent / "sync_config.yaml"


# ---------------------------------------------------------------------------
# Typed config sections
# ---------------------------------------------------------------------------


@dataclass
class MetricConfig:
    """Polling settings for one metric kind."""

    kind: MetricKind
    enabled: bool = True
    unit: str = ""
    bucket: Bucketing | None = None


@dataclass
class PermissionConfig:
    """Platform permission requested before the provider handshake."""

    name: str = "activity_recognition"
    title: str = ""
    message: str = ""
    button_neutral: str = ""
    button_negative: str = ""
    button_positive: str = ""

    @property
    def rationale(self) -> dict[str, str]:
        """Prompt text in the shape providers expect."""
        return {
            "title": self.title,
            "message": self.message,
            "buttonNeutral": self.button_neutral,
            "buttonNegative": self.button_negative,
            "buttonPositive": self.button_positive,
        }


@dataclass
class SyncConfig:
    """Complete, validated sync configuration.

    Attributes:
        version:          Config schema version string.
        interval_seconds: Seconds between periodic fetch cycles.
        metrics:          Per-metric settings in display order.
        permission:       Permission prompt settings.
    """

    version: str
    interval_seconds: float
    metrics: list[MetricConfig]
    permission: PermissionConfig
    _raw: dict = field(default_factory=dict, repr=False)

    @property
    def enabled_kinds(self) -> list[MetricKind]:
        """Metric kinds polled on every cycle, in display order."""
        return [m.kind for m in self.metrics if m.enabled]

    def metric(self, kind: MetricKind) -> MetricConfig:
        """Return settings for ``kind``, falling back to defaults if unlisted."""
        for m in self.metrics:
            if m.kind is kind:
                return m
        return MetricConfig(kind=kind, enabled=False)


# ---------------------------------------------------------------------------
# Loader / validation
# ---------------------------------------------------------------------------


class ConfigValidationError(ValueError):
    """Raised when sync_config.yaml fails validation."""


def _load_yaml(path: Path) -> dict:
    """Read and parse a YAML file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigValidationError: If the YAML is malformed.
    """
    import yaml  # pyyaml

    if not path.exists():
        raise FileNotFoundError(f"Sync config not found: {path}")

    with path.open("r", encoding="utf-8") as fh:
        try:
            return yaml.safe_load(fh) or {}
        except yaml.YAMLError as exc:
            raise ConfigValidationError(f"YAML parse error in {path}: {exc}") from exc


def _build_bucket(raw: object, where: str, errors: list[str]) -> Bucketing | None:
    if raw is None:
        return None
    if not isinstance(raw, dict):
        errors.append(f"{where}.bucket must be a mapping with 'interval' and 'unit'")
        return None
    unit = raw.get("unit", "day")
    if unit not in BUCKET_UNIT_MS:
        errors.append(
            f"{where}.bucket.unit = {unit!r} is not one of {sorted(BUCKET_UNIT_MS)}"
        )
        return None
    try:
        interval = int(raw.get("interval", 1))
    except (TypeError, ValueError):
        errors.append(f"{where}.bucket.interval must be an integer, got {raw.get('interval')!r}")
        return None
    if interval < 1:
        errors.append(f"{where}.bucket.interval must be >= 1, got {interval}")
        return None
    return Bucketing(interval=interval, unit=unit)


def _validate_and_build(raw: dict) -> SyncConfig:
    """Validate the raw YAML dict and construct a SyncConfig.

    Performs structural validation and applies defaults for optional fields.

    Raises:
        ConfigValidationError: If any field is missing or invalid.
    """
    errors: list[str] = []

    version = str(raw.get("version", "1.0"))

    # ── Sync timing ──
    sync_raw = raw.get("sync") or {}
    interval_seconds = 900.0
    try:
        interval_seconds = float(sync_raw.get("interval_seconds", 900))
    except (TypeError, ValueError):
        errors.append(
            f"sync.interval_seconds must be a number, got {sync_raw.get('interval_seconds')!r}"
        )
    else:
        if interval_seconds <= 0:
            errors.append(f"sync.interval_seconds must be > 0, got {interval_seconds}")

    # ── Metrics ──
    metrics_raw = raw.get("metrics")
    if not metrics_raw:
        errors.append("'metrics' section is missing or empty")
    metrics: list[MetricConfig] = []
    for name, cfg in (metrics_raw or {}).items():
        try:
            kind = MetricKind(name)
        except ValueError:
            errors.append(
                f"metrics.{name} is not a known metric; expected one of "
                f"{[k.value for k in MetricKind]}"
            )
            continue
        cfg = cfg or {}
        if not isinstance(cfg, dict):
            errors.append(f"metrics.{name} must be a mapping")
            continue
        metrics.append(
            MetricConfig(
                kind=kind,
                enabled=bool(cfg.get("enabled", True)),
                unit=str(cfg.get("unit", "")),
                bucket=_build_bucket(cfg.get("bucket"), f"metrics.{name}", errors),
            )
        )

    if metrics and not any(m.enabled for m in metrics):
        errors.append("at least one metric must be enabled")

    # ── Permission ──
    perm_raw = raw.get("permission") or {}
    permission = PermissionConfig(
        name=str(perm_raw.get("name", "activity_recognition")),
        title=str(perm_raw.get("title", "")),
        message=str(perm_raw.get("message", "")),
        button_neutral=str(perm_raw.get("button_neutral", "")),
        button_negative=str(perm_raw.get("button_negative", "")),
        button_positive=str(perm_raw.get("button_positive", "")),
    )

    if errors:
        raise ConfigValidationError(
            f"sync_config.yaml has {len(errors)} validation error(s):\n"
            + "\n".join(f"  • {e}" for e in errors)
        )

    return SyncConfig(
        version=version,
        interval_seconds=interval_seconds,
        metrics=metrics,
        permission=permission,
        _raw=raw,
    )


def load_sync_config(path: Path | None = None) -> SyncConfig:
    """Load and validate the sync config from disk.

    Args:
        path: Override path to YAML. Uses the bundled sync_config.yaml by default.

    Returns:
        Validated SyncConfig instance.
    """
    target = path or _CONFIG_PATH
    raw = _load_yaml(target)
    config = _validate_and_build(raw)
    logger.info("Loaded sync config v%s from %s", config.version, target)
    return config


# ---------------------------------------------------------------------------
# Global singleton with hot-reload support
# ---------------------------------------------------------------------------

_config: SyncConfig | None = None
_config_lock = threading.Lock()


def get_sync_config() -> SyncConfig:
    """Return the global SyncConfig singleton, loading it on first call.

    Thread-safe.  Use ``reload_sync_config()`` to refresh after YAML changes.
    """
    global _config
    if _config is None:
        with _config_lock:
            if _config is None:  # double-checked locking
                _config = load_sync_config()
    return _config


def reload_sync_config(path: Path | None = None) -> SyncConfig:
    """Reload the sync config from disk and replace the global singleton.

    If validation fails, the old config is retained and the error is re-raised.

    Raises:
        ConfigValidationError: If the new config is invalid.
        FileNotFoundError:     If the config file is missing.
    """
    global _config
    new_config = load_sync_config(path)  # validate before acquiring lock
    with _config_lock:
        old_version = _config.version if _config else "none"
        _config = new_config
    logger.info("Reloaded sync config: %s → %s", old_version, new_config.version)
    return new_config
