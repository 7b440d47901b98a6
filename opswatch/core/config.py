"""Application configuration management."""
import json
import os
import tempfile
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_COOLDOWN_MS = 5 * 60 * 1000
DEFAULT_CAPACITY_BASELINE_BYTES = 2 * 1024 * 1024 * 1024
THRESHOLD_LEVELS = ("warning", "critical")


class ThresholdLevel(BaseModel):
    """Warning/critical boundary pair for a single metric."""

    model_config = {"extra": "forbid", "validate_assignment": True}

    warning: float = Field(..., description="Level at which a WARNING is raised")
    critical: float = Field(..., description="Level at which a CRITICAL is raised")

    @model_validator(mode="after")
    def _check_order(self) -> "ThresholdLevel":
        if self.critical < self.warning:
            raise ValueError(
                f"critical threshold ({self.critical}) must not be below warning ({self.warning})"
            )
        return self


class ThresholdConfig(BaseModel):
    """Per-metric thresholds; unknown metric keys are rejected on load."""

    model_config = {"extra": "forbid"}

    memory: ThresholdLevel = Field(
        default_factory=lambda: ThresholdLevel(warning=1200, critical=1500),
        description="Resident memory in MB",
    )
    cpu: ThresholdLevel = Field(
        default_factory=lambda: ThresholdLevel(warning=70, critical=85),
        description="Process CPU usage in percent",
    )
    response_time: ThresholdLevel = Field(
        default_factory=lambda: ThresholdLevel(warning=3000, critical=5000),
        description="Average response time in milliseconds",
    )
    error_rate: ThresholdLevel = Field(
        default_factory=lambda: ThresholdLevel(warning=3, critical=5),
        description="Error rate in percent of requests",
    )
    disk_space: ThresholdLevel = Field(
        default_factory=lambda: ThresholdLevel(warning=80, critical=90),
        description="Disk usage in percent",
    )
    database_latency: ThresholdLevel = Field(
        default_factory=lambda: ThresholdLevel(warning=5000, critical=8000),
        description="Database ping latency in milliseconds",
    )
    dependency_latency: ThresholdLevel = Field(
        default_factory=lambda: ThresholdLevel(warning=10000, critical=20000),
        description="Dependency RPC latency in milliseconds",
    )
    dependency_staleness: ThresholdLevel = Field(
        default_factory=lambda: ThresholdLevel(warning=300, critical=900),
        description="Seconds since the dependency last produced an event",
    )

    @classmethod
    def metric_names(cls) -> tuple[str, ...]:
        return tuple(cls.model_fields)

    def level_for(self, metric: str) -> ThresholdLevel:
        if metric not in self.metric_names():
            raise ValueError(f"Unknown threshold metric '{metric}'")
        return getattr(self, metric)

    def update(self, metric: str, level: str, value: float) -> ThresholdLevel:
        """Set one boundary of a metric, keeping warning <= critical."""

        current = self.level_for(metric)
        if level not in THRESHOLD_LEVELS:
            raise ValueError(f"Unknown threshold level '{level}'")
        updated = ThresholdLevel(**{**current.model_dump(), level: value})
        setattr(self, metric, updated)
        return updated


class MonitorConfig(BaseModel):
    """Tunables for the monitoring engine."""

    model_config = {"extra": "forbid"}

    thresholds: ThresholdConfig = Field(default_factory=ThresholdConfig)
    cooldown_duration_ms: int = Field(
        DEFAULT_COOLDOWN_MS, ge=0, description="Minimum gap between two alerts sharing a key"
    )
    capacity_baseline_bytes: int = Field(
        DEFAULT_CAPACITY_BASELINE_BYTES,
        gt=0,
        description="Memory budget used to compute the memory percentage",
    )
    health_check_interval: float = Field(30, gt=0, description="Seconds between health checks")
    rotation_interval: float = Field(60, gt=0, description="Seconds between bucket rotations")
    cleanup_interval: float = Field(3600, gt=0, description="Seconds between retention cleanups")
    minute_retention: float = Field(3600, gt=0, description="Seconds of minute buckets kept")
    hour_retention: float = Field(86400, gt=0, description="Seconds of hour buckets kept")
    slow_query_threshold_ms: float = Field(100, ge=0, description="Queries slower than this are kept")
    slow_query_capacity: int = Field(100, gt=0, description="Maximum slow queries kept")
    database_probe_timeout: float = Field(5, gt=0, description="Database ping timeout in seconds")
    dependency_probe_timeout: float = Field(10, gt=0, description="Dependency probe timeout in seconds")
    alert_retention: float = Field(
        7 * 24 * 3600, gt=0, description="Seconds after which alert history entries are dropped"
    )
    disk_path: str = Field("/", description="Mount point inspected for disk usage")


class AppConfig(BaseModel):
    """Application-level configuration model."""

    model_config = {"extra": "ignore"}

    host: str = Field("0.0.0.0", description="Application bind address")
    port: int = Field(5000, description="Application bind port")
    log_level: str = Field("INFO", description="Root logging level")
    webhook_url: Optional[str] = Field(
        default=None,
        description="Operator webhook receiving alert messages",
    )
    webhook_timeout: float = Field(10, gt=0, description="Webhook request timeout in seconds")
    admin_token: Optional[str] = Field(
        default=None,
        description="Token required for threshold/cooldown changes",
    )


class ConfigFile(BaseModel):
    """Root configuration file structure."""

    model_config = {"extra": "forbid"}

    app_settings: AppConfig = Field(default_factory=AppConfig)
    monitor: MonitorConfig = Field(default_factory=MonitorConfig)


class Settings(BaseSettings):
    """Resolved application settings; environment variables win over the file."""

    model_config = SettingsConfigDict(env_prefix="OPSWATCH_", extra="ignore")

    host: str = Field("0.0.0.0", description="Application bind address")
    port: int = Field(5000, description="Application bind port")
    log_level: str = Field("INFO", description="Root logging level")
    webhook_url: Optional[str] = Field(default=None, description="Operator webhook URL")
    webhook_timeout: float = Field(10, description="Webhook request timeout in seconds")
    admin_token: Optional[str] = Field(default=None, description="Admin token")
    monitor: MonitorConfig = Field(default_factory=MonitorConfig)


def _get_config_file_path() -> Path:
    """Get the absolute path to the opswatch.json configuration file."""
    override = os.environ.get("OPSWATCH_CONFIG_FILE")
    if override:
        return Path(override)
    project_root = Path(__file__).parent.parent.parent
    return project_root / "opswatch.json"


def _persist_config(config: ConfigFile, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    try:
        with tempfile.NamedTemporaryFile(
            "w",
            encoding="utf-8",
            delete=False,
            dir=path.parent,
            suffix=".tmp",
        ) as tmp_file:
            json.dump(config.model_dump(mode="json"), tmp_file, indent=2, ensure_ascii=False)
            tmp_name = Path(tmp_file.name)
        os.replace(tmp_name, path)
    except Exception as exc:  # noqa: BLE001
        raise RuntimeError(f"Failed to persist configuration to {path}: {exc}") from exc


def _ensure_config_file() -> Path:
    path = _get_config_file_path()
    if path.exists():
        return path

    _persist_config(ConfigFile(), path)
    return path


def load_config_file(path: Path | None = None) -> ConfigFile:
    """Load and validate the configuration file (blocking, use at startup)."""
    config_path = path or _ensure_config_file()

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            config_data = json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in {config_path}: {e}") from e
    except OSError as e:
        raise RuntimeError(f"Error loading configuration from {config_path}: {e}") from e
    return ConfigFile(**config_data)


def settings_from_config(config: ConfigFile) -> Settings:
    """Create Settings from a config file; OPSWATCH_* env vars override file values."""

    app_config = config.app_settings
    file_values = {
        "host": app_config.host,
        "port": app_config.port,
        "log_level": app_config.log_level,
        "webhook_url": app_config.webhook_url,
        "webhook_timeout": app_config.webhook_timeout,
        "admin_token": app_config.admin_token,
    }
    env_settings = Settings()
    overrides = env_settings.model_dump(exclude_unset=True, exclude={"monitor"})
    return Settings(**{**file_values, **overrides, "monitor": config.monitor})


@lru_cache(maxsize=None)
def get_settings() -> Settings:
    """Return a cached Settings instance (blocking, use at startup only)."""

    return settings_from_config(load_config_file())
