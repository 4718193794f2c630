"""YAML config loading and validation."""

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml


@dataclass
class LocalConfig:
    database_url: str = "sqlite:///data/job_board.db"


@dataclass
class RemoteConfig:
    enabled: bool = True
    project_id: str = ""
    database: str = "(default)"
    api_key: str = ""
    auth_token: str = ""  # optional OAuth bearer token
    base_url: str = "https://firestore.googleapis.com/v1"
    timeout: float = 10.0


@dataclass
class ConnectivityConfig:
    check_url: str = "https://connectivitycheck.gstatic.com/generate_204"
    timeout: float = 3.0


@dataclass
class SyncConfig:
    send_duplicate_window_ms: int = 3000
    pull_duplicate_window_ms: int = 5000
    search_limit: int = 20
    message_check_interval_minutes: int = 15
    message_check_lookback_ms: int = 60 * 60 * 1000
    message_check_max_attempts: int = 3


@dataclass
class AppConfig:
    local: LocalConfig = field(default_factory=LocalConfig)
    remote: RemoteConfig = field(default_factory=RemoteConfig)
    connectivity: ConnectivityConfig = field(default_factory=ConnectivityConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)
    log_dir: str = "logs"

    @property
    def remote_configured(self) -> bool:
        return self.remote.enabled and bool(self.remote.project_id)


def load_config(config_path: str = "config.yaml") -> AppConfig:
    """Load configuration from a YAML file; environment variables override secrets."""
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(
            f"Config file not found: {config_path}\n"
            "Copy config.example.yaml to config.yaml and fill in your settings."
        )

    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    config = AppConfig()

    # Local store (env var takes precedence)
    local_raw = raw.get("local", {})
    config.local = LocalConfig(
        database_url=os.environ.get(
            "JOB_BOARD_DATABASE_URL",
            local_raw.get("database_url", "sqlite:///data/job_board.db"),
        ),
    )

    # Remote store
    remote_raw = raw.get("remote", {})
    config.remote = RemoteConfig(
        enabled=remote_raw.get("enabled", True),
        project_id=remote_raw.get("project_id", ""),
        database=remote_raw.get("database", "(default)"),
        api_key=os.environ.get("JOB_BOARD_FIRESTORE_API_KEY", remote_raw.get("api_key", "")),
        auth_token=os.environ.get("JOB_BOARD_FIRESTORE_TOKEN", remote_raw.get("auth_token", "")),
        base_url=remote_raw.get("base_url", "https://firestore.googleapis.com/v1"),
        timeout=remote_raw.get("timeout", 10.0),
    )

    # Connectivity check
    conn_raw = raw.get("connectivity", {})
    config.connectivity = ConnectivityConfig(
        check_url=conn_raw.get("check_url", "https://connectivitycheck.gstatic.com/generate_204"),
        timeout=conn_raw.get("timeout", 3.0),
    )

    # Sync tuning
    sync_raw = raw.get("sync", {})
    config.sync = SyncConfig(
        send_duplicate_window_ms=sync_raw.get("send_duplicate_window_ms", 3000),
        pull_duplicate_window_ms=sync_raw.get("pull_duplicate_window_ms", 5000),
        search_limit=sync_raw.get("search_limit", 20),
        message_check_interval_minutes=sync_raw.get("message_check_interval_minutes", 15),
        message_check_lookback_ms=sync_raw.get("message_check_lookback_ms", 60 * 60 * 1000),
        message_check_max_attempts=sync_raw.get("message_check_max_attempts", 3),
    )

    config.log_dir = raw.get("log_dir", "logs")

    return config


def validate_config(config: AppConfig) -> list[str]:
    """Return list of validation warnings (empty = OK)."""
    warnings = []

    if not config.remote.enabled:
        warnings.append("Remote store disabled - running local-only")
    elif not config.remote.project_id:
        warnings.append("No remote project_id configured - running local-only")
    elif not config.remote.api_key and not config.remote.auth_token:
        warnings.append("No Firestore API key or auth token configured - remote calls may be rejected")

    if config.sync.send_duplicate_window_ms <= 0 or config.sync.pull_duplicate_window_ms <= 0:
        warnings.append("Duplicate windows must be positive - message duplicate suppression is disabled")

    if config.sync.message_check_interval_minutes < 15:
        warnings.append("Message check interval below 15 minutes - the scheduler will use 15")

    return warnings
