"""Configuration management for the Reattend daemon."""

import os
from pathlib import Path
from typing import Optional

import yaml
from loguru import logger
from pydantic import BaseModel, Field, field_validator


DEFAULT_API_URL = "https://reattend.com"


class CadenceConfig(BaseModel):
    """Tick period and per-signal moduli for the triage loop."""
    tick_seconds: float = 2.0
    clipboard_every: int = 3
    app_every: int = 2
    screen_every: int = 30

    @field_validator('tick_seconds', 'clipboard_every', 'app_every', 'screen_every')
    @classmethod
    def validate_positive(cls, v):
        if v <= 0:
            raise ValueError("cadence values must be positive")
        return v


class TriageConfig(BaseModel):
    min_clipboard_words: int = 5
    min_clipboard_chars: int = 30
    min_screen_words: int = 12
    similarity_threshold: float = 0.75
    max_capture_chars: int = 3000

    @field_validator('similarity_threshold')
    @classmethod
    def validate_threshold(cls, v: float) -> float:
        if not 0 <= v <= 1:
            raise ValueError("similarity_threshold must be between 0 and 1")
        return v


class ControlConfig(BaseModel):
    enabled: bool = True
    host: str = "127.0.0.1"
    port: int = 8766


class Config(BaseModel):
    """Main configuration for the Reattend daemon."""

    api_url: str = DEFAULT_API_URL
    api_token: str = ""
    request_timeout: float = 10.0
    ocr_timeout: float = 30.0
    cadence: CadenceConfig = Field(default_factory=CadenceConfig)
    triage: TriageConfig = Field(default_factory=TriageConfig)
    control: ControlConfig = Field(default_factory=ControlConfig)

    @field_validator('api_url')
    @classmethod
    def validate_api_url(cls, v: str) -> str:
        v = (v or DEFAULT_API_URL).strip()
        return v.rstrip("/")

    @property
    def is_configured(self) -> bool:
        """True when an API token is available."""
        return bool(self.api_token.strip())

    @classmethod
    def default_paths(cls) -> list:
        return [
            Path("reattend.yaml"),
            Path.home() / ".config" / "reattend" / "config.yaml",
        ]

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "Config":
        """
        Load configuration from YAML.

        Without an explicit path the default locations are searched; if none
        exists, defaults are used. REATTEND_API_URL and REATTEND_API_TOKEN
        override whatever the file says.
        """
        data = {}
        if config_path is None:
            for candidate in cls.default_paths():
                if candidate.exists():
                    config_path = candidate
                    break

        if config_path is not None:
            config_path = Path(config_path)
            if not config_path.exists():
                raise FileNotFoundError(f"Config file not found: {config_path}")
            logger.info(f"Loading config from: {config_path}")
            with open(config_path, 'r') as f:
                data = yaml.safe_load(f) or {}
        else:
            logger.info("No config file found, using defaults")

        env_url = os.environ.get("REATTEND_API_URL")
        env_token = os.environ.get("REATTEND_API_TOKEN")
        if env_url:
            data["api_url"] = env_url
        if env_token:
            data["api_token"] = env_token

        return cls(**data)

    def save(self, config_path: Path) -> None:
        """Save configuration to YAML file."""
        config_path = Path(config_path)
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, 'w') as f:
            yaml.safe_dump(self.model_dump(), f, default_flow_style=False)
