# paintquote/core/settings.py
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_RULES_PATH = Path(__file__).resolve().parents[1] / "rules" / "surface_categories.yaml"


class EngineSettings(BaseSettings):
    # --- Output ---
    currency: str = "USD"

    # --- Policies (both modes exist in production data, keep explicit) ---
    default_tax_base: Literal["materials_only", "subtotal"] = "materials_only"
    item_gallon_rounding: Literal["whole", "quarter"] = "whole"
    legacy_surface_gallon_rounding: Literal["whole", "quarter"] = "quarter"

    # --- Tables ---
    rules_path: str = str(DEFAULT_RULES_PATH)

    # --- Logging / debug ---
    log_level: str = "INFO"
    json_logs: bool = True
    trace_enabled: bool = False

    model_config = SettingsConfigDict(
        env_prefix="PAINTQUOTE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


settings = EngineSettings()  # reads .env
