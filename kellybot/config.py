"""Configuration management using Pydantic Settings."""

import logging
from decimal import Decimal
from functools import lru_cache
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

CONFIG_SECTIONS = ("staking", "bankroll", "sessions", "bot")


class StakingConfig(BaseModel):
    """Kelly stake sizing parameters."""

    kelly_fraction: Decimal = Decimal("0.25")  # 1/4 Kelly
    max_stake_pct: Decimal = Decimal("0.01")  # never more than 1% of bankroll
    stake_increment: Decimal = Decimal("0.50")
    min_stake: Decimal = Decimal("0.50")


class BankrollConfig(BaseModel):
    """Bankroll ledger defaults."""

    default_bankroll: Decimal = Decimal("3000")


class SessionConfig(BaseModel):
    """Draft bet sessions."""

    draft_ttl_minutes: int = 15


class BotConfig(BaseModel):
    """Telegram command surface."""

    allowed_chat_ids: list[int] = Field(default_factory=list)  # empty = any chat
    send_critical_alerts: bool = True
    max_list_items: int = 25


class Settings(BaseSettings):
    """Main configuration class."""

    # Paths
    data_dir: Path = Path("data")

    # Secrets
    telegram_bot_token: str = ""
    telegram_chat_id: str = ""
    logfire_token: str = ""

    # Nested configuration sections
    staking: StakingConfig = Field(default_factory=StakingConfig)
    bankroll: BankrollConfig = Field(default_factory=BankrollConfig)
    sessions: SessionConfig = Field(default_factory=SessionConfig)
    bot: BotConfig = Field(default_factory=BotConfig)

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

    @property
    def bankroll_path(self) -> Path:
        return self.data_dir / "bankroll.yaml"

    @property
    def bets_path(self) -> Path:
        return self.data_dir / "bets.json"

    @property
    def aliases_path(self) -> Path:
        return self.data_dir / "aliases.yaml"

    @property
    def lock_path(self) -> Path:
        return self.data_dir / ".lock"

    def load_yaml_config(self) -> None:
        """Load and merge YAML configuration."""
        config_path = self.data_dir / "config.yaml"

        if not config_path.exists():
            logger.warning(
                f"Config file not found: {config_path}. "
                "Using defaults. Run 'python -m kellybot init' to create it."
            )
            return

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                yaml_config = yaml.safe_load(f)

            if not yaml_config:
                logger.warning(f"Empty config file: {config_path}")
                return

            for section_name in CONFIG_SECTIONS:
                if section_name in yaml_config:
                    section = getattr(self, section_name)
                    section_dict = section.model_dump()
                    section_dict.update(yaml_config[section_name] or {})
                    setattr(self, section_name, section.__class__(**section_dict))

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
