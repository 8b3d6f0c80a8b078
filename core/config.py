import logging
import os
from pathlib import Path
from typing import List

import tomli_w
from pydantic import IPvAnyAddress, PositiveInt, conint
from pydantic_settings import BaseSettings, SettingsConfigDict, TomlConfigSettingsSource

logger = logging.getLogger(__name__)

CONFIG_PATH = Path(os.getenv("VIDEO_SERVER_CONFIG", "config.toml"))


class ConfigError(Exception):
    """Raised when an existing settings file cannot be read or validated."""


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="VIDEO_SERVER_",
        frozen=True,
        extra="ignore",
        validate_default=True,
    )

    video_path: Path = Path("videos/")
    ip: IPvAnyAddress = "0.0.0.0"
    port: conint(ge=0, le=65535) = 3000
    chunk_size: PositiveInt = 65536  # default window for "bytes=N-"
    ffmpeg_command: str = "ffmpeg"
    max_frame_jobs: PositiveInt = 4
    log_level: str = "INFO"
    cors_origins: List[str] = [
        "http://localhost",
        "http://127.0.0.1",
        "http://localhost:5173",
        "http://localhost:3000",
    ]


def save_settings(settings: Settings, path: Path) -> None:
    path.write_text(tomli_w.dumps(settings.model_dump(mode="json")), encoding="utf-8")


def load_settings(path: Path = CONFIG_PATH) -> Settings:
    """
    Read settings from a TOML file. When the file does not exist yet,
    the defaults are written there and returned.
    """
    if not path.exists():
        settings = Settings()
        try:
            save_settings(settings, path)
        except OSError as e:
            logger.error("Failed to write default configuration %s: %s", path, e)
        return settings

    try:
        raw = TomlConfigSettingsSource(Settings, toml_file=path)()
        return Settings(**raw)
    except (OSError, ValueError, TypeError) as e:
        raise ConfigError(f"Failed to load configuration {path}: {e}") from e
