"""Configuration management for the auction-finalizer system."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
import yaml


@dataclass
class SchedulerConfig:
    """Deadline watch loop configuration."""
    poll_interval_seconds: float = 1.0


@dataclass
class SupabaseConfig:
    """Remote backend configuration."""
    url: str = ""
    api_key: str = ""
    end_auction_rpc: str = "end_auction"
    auction_arg: str = "vehicle_uuid"
    queue_table: str = "auction_queue"
    queue_key_column: str = "vehicle_id"
    request_timeout_seconds: float = 10.0


@dataclass
class DatabaseConfig:
    """Local database configuration."""
    data_dir: str = "./data"
    queue_db: str = "queue.db"


@dataclass
class Config:
    """Main configuration for the finalizer."""
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    supabase: SupabaseConfig = field(default_factory=SupabaseConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)

    @classmethod
    def from_dict(cls, data: dict) -> "Config":
        """Create config from dictionary."""
        config = cls()
        section_mapping = {
            "scheduler": config.scheduler,
            "supabase": config.supabase,
            "database": config.database,
        }
        for section_name, section_obj in section_mapping.items():
            if section_name in data:
                for key, value in data[section_name].items():
                    if hasattr(section_obj, key):
                        setattr(section_obj, key, value)
        return config

    def to_dict(self) -> dict:
        """Convert config to dictionary."""
        return {
            "scheduler": self.scheduler.__dict__.copy(),
            "supabase": self.supabase.__dict__.copy(),
            "database": self.database.__dict__.copy(),
        }


def load_config(config_path: Optional[str] = None) -> Config:
    """Load configuration from YAML file.

    Args:
        config_path: Path to config file. If None, looks for:
            1. AUCTION_FINALIZER_CONFIG env var
            2. ./config/default.yaml
            3. Uses default config

    Returns:
        Config object
    """
    if config_path is None:
        config_path = os.environ.get("AUCTION_FINALIZER_CONFIG")

    if config_path is None:
        default_path = Path("./config/default.yaml")
        if default_path.exists():
            config_path = str(default_path)

    if config_path is not None:
        path = Path(config_path)
        if path.exists():
            with open(path, "r") as f:
                data = yaml.safe_load(f)
                return Config.from_dict(data or {})

    return Config()


def save_config(config: Config, config_path: str) -> None:
    """Save configuration to YAML file."""
    path = Path(config_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w") as f:
        yaml.dump(config.to_dict(), f, default_flow_style=False, sort_keys=False)
