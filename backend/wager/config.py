"""Configuration management using Pydantic Settings."""

import logging
from functools import lru_cache
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from wager.fees import DEFAULT_MAX_FEE_RATE_BPS

logger = logging.getLogger(__name__)

CONFIG_SECTIONS = ("engine", "ledger")


class EngineConfig(BaseModel):
    """Identities and limits of one engine instance."""

    owner: str = "owner"
    resolver: str | None = None  # defaults to owner
    engine_account: str = "wager-escrow"
    fee_rate_bps: int = Field(default=250, ge=0)
    max_fee_rate_bps: int = Field(
        default=DEFAULT_MAX_FEE_RATE_BPS, ge=0, le=DEFAULT_MAX_FEE_RATE_BPS
    )
    max_description_length: int = Field(default=256, gt=0)

    @model_validator(mode="after")
    def check_accounts_and_rate(self) -> "EngineConfig":
        if self.fee_rate_bps > self.max_fee_rate_bps:
            raise ValueError(
                f"fee_rate_bps {self.fee_rate_bps} exceeds max_fee_rate_bps {self.max_fee_rate_bps}"
            )
        if self.engine_account in (self.owner, self.resolver_account):
            raise ValueError("engine_account must differ from owner and resolver")
        return self

    @property
    def resolver_account(self) -> str:
        return self.resolver or self.owner


class LedgerConfig(BaseModel):
    """Opening balances for the local in-memory ledger."""

    initial_balances: dict[str, int] = Field(default_factory=dict)

    @field_validator("initial_balances")
    @classmethod
    def check_non_negative(cls, v: dict[str, int]) -> dict[str, int]:
        negative = [account for account, amount in v.items() if amount < 0]
        if negative:
            raise ValueError(f"Negative opening balances for: {', '.join(negative)}")
        return v


class Settings(BaseSettings):
    """Main configuration class."""

    # Paths
    data_dir: Path = Path("data")

    # Observability
    logfire_token: str = ""
    environment: str = "local"

    # Nested configuration sections
    engine: EngineConfig = Field(default_factory=EngineConfig)
    ledger: LedgerConfig = Field(default_factory=LedgerConfig)

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
                "Using defaults. Run 'python -m wager init' to create it."
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
