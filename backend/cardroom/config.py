"""Configuration management using Pydantic Settings."""

import logging
from functools import lru_cache
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class TableConfig(BaseModel):
    """House rules and limits for the blackjack table (all amounts in cents)."""

    daily_allowance_cents: int = 10_000_000  # $100,000 per agent per day
    min_wager_cents: int = 100  # $1
    max_wager_cents: int = 100_000  # $1,000
    max_rounds_per_run: int = 100
    run_timeout_seconds: float = 300.0  # long agent runs must not be cut short


class MarketConfig(BaseModel):
    """Spectator wagering parameters."""

    head_to_head_window: int = 3  # rounds each agent must play before settling
    participant_daily_cents: int = 100_000  # $1,000 daily claim


class AutoPlayConfig(BaseModel):
    """Background VS rounds and settlement sweeps."""

    enabled: bool = False
    interval_minutes: int = 5
    agent_a: str = "openai-gpt-4o-mini"
    agent_b: str = "openai-gpt-4o"
    settlement_sweep_minutes: int = 10


class AuditConfig(BaseModel):
    """Append-only audit publication (disabled when endpoint_url is empty)."""

    endpoint_url: str = ""
    max_message_bytes: int = 1024
    timeout_seconds: float = 10.0


class Settings(BaseSettings):
    """Main configuration class."""

    # Paths
    data_dir: Path = Path("data")

    # API Keys
    openai_api_key: str = ""
    anthropic_api_key: str = ""
    logfire_token: str = ""

    # Nested configuration sections
    table: TableConfig = Field(default_factory=TableConfig)
    market: MarketConfig = Field(default_factory=MarketConfig)
    autoplay: AutoPlayConfig = Field(default_factory=AutoPlayConfig)
    audit: AuditConfig = Field(default_factory=AuditConfig)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("data_dir", mode="after")
    @classmethod
    def resolve_data_dir(cls, v: Path) -> Path:
        """Resolve data directory to absolute path."""
        return v.resolve()

    def load_yaml_config(self) -> None:
        """Load and merge YAML configuration."""
        config_path = self.data_dir / "config.yaml"

        if not config_path.exists():
            logger.warning(
                f"Config file not found: {config_path}. "
                "Using defaults. Run 'python -m cardroom init' to create it."
            )
            return

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                yaml_config = yaml.safe_load(f)

            if not yaml_config:
                logger.warning(f"Empty config file: {config_path}")
                return

            for section_name in ["table", "market", "autoplay", "audit"]:
                if section_name in yaml_config:
                    section = getattr(self, section_name)
                    yaml_section = yaml_config[section_name] or {}

                    section_dict = section.model_dump()
                    section_dict.update(yaml_section)

                    new_section = section.__class__(**section_dict)
                    setattr(self, section_name, new_section)

            logger.info(f"Loaded configuration from {config_path}")

        except yaml.YAMLError as e:
            logger.error(f"Failed to parse YAML config: {e}")
            raise
        except Exception as e:
            logger.error(f"Failed to load config: {e}")
            raise


@lru_cache()
def get_settings() -> Settings:
    """Get singleton Settings instance."""
    settings = Settings()
    settings.load_yaml_config()
    return settings
