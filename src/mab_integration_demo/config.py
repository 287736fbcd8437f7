"""Configuration management for the integration demo."""

import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .phases import DemoPhase

SAMPLE_BATCH_ID = "B-2024-0342"
SAMPLE_BATCH_START = datetime(2024, 3, 15, 6, 0, 0)


def _parse_timestamp(value: Any) -> datetime:
    """Normalize a YAML timestamp or ISO string to naive UTC."""
    if isinstance(value, str):
        value = datetime.fromisoformat(value.rstrip("Z"))
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


@dataclass
class DatabaseConfig:
    """Relational store backing the live dashboard."""

    url: str = "sqlite:///mab_demo.db"
    echo: bool = False


@dataclass
class ServerConfig:
    """HTTP server settings."""

    host: str = "127.0.0.1"
    port: int = 8000
    refresh_interval_s: int = 30  # Live dashboard polling period


@dataclass
class BatchConfig:
    """Synthetic batch parameters."""

    batch_id: str = SAMPLE_BATCH_ID
    site_id: str = "STA"
    start_time: datetime = SAMPLE_BATCH_START
    duration_hours: int = 105
    dcs_interval_s: int = 30
    random_seed: Optional[int] = 342
    initial_phase: str = DemoPhase.RAW.slug


@dataclass
class Config:
    """Main configuration container."""

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    batch: BatchConfig = field(default_factory=BatchConfig)

    @classmethod
    def from_yaml(cls, config_path: Path) -> "Config":
        """Load configuration from YAML file."""
        if not config_path.exists():
            return cls.default()

        with open(config_path) as f:
            data = yaml.safe_load(f) or {}

        return cls._from_dict(data)

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        config = cls.default()

        config.database.url = os.getenv("DATABASE_URL", config.database.url)

        config.server.host = os.getenv("DEMO_HOST", config.server.host)
        config.server.port = int(os.getenv("DEMO_PORT", config.server.port))

        config.batch.batch_id = os.getenv("DEMO_BATCH_ID", config.batch.batch_id)
        config.batch.site_id = os.getenv("DEMO_SITE_ID", config.batch.site_id)

        seed = os.getenv("DEMO_RANDOM_SEED")
        if seed:
            config.batch.random_seed = int(seed)

        phase = os.getenv("DEMO_PHASE")
        if phase:
            config.batch.initial_phase = DemoPhase.from_slug(phase).slug

        return config

    @classmethod
    def default(cls) -> "Config":
        """Create default configuration for the sample batch."""
        return cls()

    @classmethod
    def _from_dict(cls, data: Dict[str, Any]) -> "Config":
        """Create config from dictionary."""
        config = cls.default()

        if "database" in data:
            db_data = data["database"] or {}
            config.database = DatabaseConfig(
                url=db_data.get("url", config.database.url),
                echo=bool(db_data.get("echo", config.database.echo)),
            )

        if "server" in data:
            server_data = data["server"] or {}
            config.server = ServerConfig(
                host=server_data.get("host", config.server.host),
                port=int(server_data.get("port", config.server.port)),
                refresh_interval_s=int(
                    server_data.get("refresh_interval_s", config.server.refresh_interval_s)
                ),
            )

        if "batch" in data:
            batch_data = data["batch"] or {}
            start = batch_data.get("start_time", config.batch.start_time)
            start = _parse_timestamp(start)
            config.batch = BatchConfig(
                batch_id=batch_data.get("batch_id", config.batch.batch_id),
                site_id=batch_data.get("site_id", config.batch.site_id),
                start_time=start,
                duration_hours=int(
                    batch_data.get("duration_hours", config.batch.duration_hours)
                ),
                dcs_interval_s=int(
                    batch_data.get("dcs_interval_s", config.batch.dcs_interval_s)
                ),
                random_seed=batch_data.get("random_seed", config.batch.random_seed),
                initial_phase=DemoPhase.from_slug(
                    batch_data.get("initial_phase", config.batch.initial_phase)
                ).slug,
            )

        # Top-level 'phase' overrides batch.initial_phase
        if "phase" in data:
            config.batch.initial_phase = DemoPhase.from_slug(str(data["phase"])).slug

        return config

    def to_yaml(self, path: Path) -> None:
        """Save configuration to YAML file."""
        data = {
            "database": {
                "url": self.database.url,
                "echo": self.database.echo,
            },
            "server": {
                "host": self.server.host,
                "port": self.server.port,
                "refresh_interval_s": self.server.refresh_interval_s,
            },
            "batch": {
                "batch_id": self.batch.batch_id,
                "site_id": self.batch.site_id,
                "start_time": self.batch.start_time.isoformat() + "Z",
                "duration_hours": self.batch.duration_hours,
                "dcs_interval_s": self.batch.dcs_interval_s,
                "random_seed": self.batch.random_seed,
                "initial_phase": self.batch.initial_phase,
            },
        }

        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)
