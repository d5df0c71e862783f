"""Application configuration dataclasses.

Frozen dataclasses with sensible defaults for each subsystem.  Values can be
overridden at construction time, or read from the process environment (and a
``.env`` file) with :func:`load_settings`.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from dataclasses import field

from dotenv import load_dotenv

from auditsync.errors import ConfigurationError


@dataclass(frozen=True)
class RuntimeEnvironment:
    """Where the job is running; rendered into every sync-status record."""

    name: str = "development"
    region: str = "unknown"
    project: str = "unknown"

    def tag(self) -> str:
        return f"{self.name.upper()} | {self.region} | {self.project}"


@dataclass(frozen=True)
class CentralStoreConfig:
    """PostgREST endpoint of the central system of record."""

    url: str | None = None
    service_key: str | None = None
    sync_status_table: str = "audit_sync_status"
    incident_table: str = "sync_errors"
    event_table: str = "pattern_moderation_log"
    timeout_seconds: float = 15.0


@dataclass(frozen=True)
class ObjectStoreConfig:
    """Object-storage destination settings."""

    bucket: str = "doccraft-audit-logs"
    region: str = "us-east-1"
    category: str = "audit_logs"
    source_label: str = "doccraft-ai-audit-logs"
    client_factory: str | None = None


@dataclass(frozen=True)
class WarehouseConfig:
    """Analytical warehouse destination settings."""

    project_id: str | None = None
    dataset_id: str = "audit_logs"
    table_id: str = "pattern_moderation_log"
    client_factory: str | None = None


@dataclass(frozen=True)
class ExportConfig:
    """Settings for one scheduled export run."""

    checkpoint_dir: str = "checkpoints"
    default_lookback_hours: int = 24
    io_timeout_seconds: float = 60.0
    batch_size: int = 1000
    alert_context: str = "Audit Export Cron"


@dataclass(frozen=True)
class StateConfig:
    """Backend for checkpoints and alert suppression state.

    Without a Redis URL each store is a directory of JSON files.
    """

    redis_url: str | None = None
    redis_prefix: str = "auditsync:state"


@dataclass(frozen=True)
class FallbackConfig:
    """Local fallback buffer for sync-status records."""

    directory: str = "logs/audit-sync"
    archive_subdir: str = "archived"
    emergency_dir: str = "."
    days_to_keep: int = 30


@dataclass(frozen=True)
class AlertConfig:
    """Failure alerting and suppression."""

    cache_dir: str = "cache"
    suppression_threshold: int = 3
    suppression_window_seconds: int = 3600
    max_error_chars: int = 500
    timeout_seconds: float = 10.0


@dataclass(frozen=True)
class NotificationConfig:
    """Notification channel endpoints shared by alerts and run summaries."""

    chat_webhook_url: str | None = None
    generic_webhook_url: str | None = None
    smtp_host: str | None = None
    smtp_port: int = 587
    smtp_user: str | None = None
    smtp_password: str | None = None
    smtp_use_tls: bool = True
    email_from: str = "noreply@doccraft.ai"
    email_to: str = "alerts@doccraft.ai"
    timeout_seconds: float = 10.0

    @property
    def email_enabled(self) -> bool:
        return bool(self.smtp_host and self.smtp_user)


@dataclass(frozen=True)
class ReingestConfig:
    """Reconciliation run settings."""

    io_timeout_seconds: float = 30.0
    max_chat_error_chars: int = 1000
    bulk_batch_size: int = 50


@dataclass(frozen=True)
class Settings:
    """All subsystem settings for one process."""

    environment: RuntimeEnvironment = field(default_factory=RuntimeEnvironment)
    central: CentralStoreConfig = field(default_factory=CentralStoreConfig)
    object_store: ObjectStoreConfig = field(default_factory=ObjectStoreConfig)
    warehouse: WarehouseConfig = field(default_factory=WarehouseConfig)
    export: ExportConfig = field(default_factory=ExportConfig)
    state: StateConfig = field(default_factory=StateConfig)
    fallback: FallbackConfig = field(default_factory=FallbackConfig)
    alerts: AlertConfig = field(default_factory=AlertConfig)
    notifications: NotificationConfig = field(default_factory=NotificationConfig)
    reingest: ReingestConfig = field(default_factory=ReingestConfig)

    def require_central(self) -> CentralStoreConfig:
        """Return the central-store config, failing fast when credentials are missing."""
        if not self.central.url or not self.central.service_key:
            raise ConfigurationError(
                "central store url and service key are required "
                "(CENTRAL_STORE_URL, CENTRAL_STORE_SERVICE_KEY)"
            )
        return self.central

    def require_destination(self, destination_type: str) -> None:
        """Fail fast when the chosen destination cannot be constructed."""
        if destination_type == "s3":
            if not self.object_store.client_factory:
                raise ConfigurationError(
                    "object store client factory is required (OBJECT_STORE_CLIENT_FACTORY)"
                )
        elif destination_type == "bigquery":
            if not self.warehouse.project_id:
                raise ConfigurationError(
                    "warehouse project id is required (GOOGLE_CLOUD_PROJECT_ID)"
                )
            if not self.warehouse.client_factory:
                raise ConfigurationError(
                    "warehouse client factory is required (WAREHOUSE_CLIENT_FACTORY)"
                )
        else:
            raise ConfigurationError(
                f"Unsupported export type '{destination_type}'. Supported: s3, bigquery."
            )


# ---------------------------------------------------------------------------
# Environment loading
# ---------------------------------------------------------------------------


def _int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from exc


def _float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from exc


def load_settings(env: Mapping[str, str] | None = None) -> Settings:
    """Build :class:`Settings` from environment variables.

    When *env* is omitted the process environment is used, after loading a
    ``.env`` file from the working directory (existing variables win).
    """
    if env is None:
        load_dotenv(override=False)
        env = os.environ

    region = env.get("AWS_REGION") or env.get("GOOGLE_CLOUD_REGION") or "unknown"
    return Settings(
        environment=RuntimeEnvironment(
            name=env.get("APP_ENV") or env.get("NODE_ENV") or "development",
            region=region,
            project=env.get("GOOGLE_CLOUD_PROJECT_ID") or "unknown",
        ),
        central=CentralStoreConfig(
            url=env.get("CENTRAL_STORE_URL"),
            service_key=env.get("CENTRAL_STORE_SERVICE_KEY"),
            timeout_seconds=_float(env, "CENTRAL_STORE_TIMEOUT_SECONDS", 15.0),
        ),
        object_store=ObjectStoreConfig(
            bucket=env.get("OBJECT_STORE_BUCKET") or "doccraft-audit-logs",
            region=env.get("AWS_REGION") or "us-east-1",
            client_factory=env.get("OBJECT_STORE_CLIENT_FACTORY"),
        ),
        warehouse=WarehouseConfig(
            project_id=env.get("GOOGLE_CLOUD_PROJECT_ID"),
            dataset_id=env.get("WAREHOUSE_DATASET_ID") or "audit_logs",
            table_id=env.get("WAREHOUSE_TABLE_ID") or "pattern_moderation_log",
            client_factory=env.get("WAREHOUSE_CLIENT_FACTORY"),
        ),
        export=ExportConfig(
            checkpoint_dir=env.get("EXPORT_CHECKPOINT_DIR") or "checkpoints",
            io_timeout_seconds=_float(env, "EXPORT_TIMEOUT_SECONDS", 60.0),
            batch_size=_int(env, "EXPORT_BATCH_SIZE", 1000),
        ),
        state=StateConfig(
            redis_url=env.get("REDIS_URL") or None,
            redis_prefix=env.get("REDIS_STATE_PREFIX") or "auditsync:state",
        ),
        fallback=FallbackConfig(
            directory=env.get("FALLBACK_LOG_DIR") or "logs/audit-sync",
            emergency_dir=env.get("FALLBACK_EMERGENCY_DIR") or ".",
            days_to_keep=_int(env, "FALLBACK_DAYS_TO_KEEP", 30),
        ),
        alerts=AlertConfig(
            cache_dir=env.get("ALERT_CACHE_DIR") or "cache",
        ),
        notifications=NotificationConfig(
            chat_webhook_url=env.get("SLACK_WEBHOOK_URL"),
            generic_webhook_url=env.get("NOTIFY_WEBHOOK_URL"),
            smtp_host=env.get("SMTP_HOST"),
            smtp_port=_int(env, "SMTP_PORT", 587),
            smtp_user=env.get("SMTP_USER"),
            smtp_password=env.get("SMTP_PASS"),
            smtp_use_tls=(env.get("SMTP_SECURE", "true").lower() != "false"),
            email_from=env.get("ALERT_EMAIL_FROM") or "noreply@doccraft.ai",
            email_to=env.get("ALERT_EMAIL_TO") or "alerts@doccraft.ai",
        ),
    )
