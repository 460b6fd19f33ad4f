from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
	# === Service ===
	log_level: str = "INFO"
	seed_catalog: bool = Field(True, description="Load the sample catalog at startup when no products exist")
	currency: str = "USD"

	# === Quotes ===
	quote_validity_days: int = 30
	document_generation_delay_seconds: float = 0.0

	# === Pricing strategies ===
	volume_switch_threshold: int = 5
	volume_discount_percent: int = 10
	bundle_capacity_threshold: int = 80
	bundle_discount_percent: int = 5
	partner_discount_percent: int = 15
	enterprise_discount_percent: int = 20
	support_standard_percent: int = 15
	support_premium_percent: int = 20

	model_config = SettingsConfigDict(
		env_prefix="RACKCPQ_",
		env_file=".env",
		env_file_encoding="utf-8",
		extra="ignore",
	)


@lru_cache
def get_settings() -> Settings:
	return Settings()
