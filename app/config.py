"""Process configuration loaded from the environment (and an optional ``.env``)."""

import os
import tempfile
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

TEMPLATES_DIR = Path(__file__).parent / "templates"

_ENVIRONMENTS = ("development", "production")


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the ingestion service."""

    app_env: str = "production"
    log_level: str = "INFO"
    vault_path: Optional[Path] = None
    fallback_dir: Path = Path(tempfile.gettempdir()) / "vaultclip-fallback"
    template_catalog: Path = TEMPLATES_DIR / "catalog.yaml"
    rate_limit_cooldown: float = 5.0
    retry_attempts: int = 3

    def __post_init__(self) -> None:
        if self.app_env not in _ENVIRONMENTS:
            raise ValueError(
                f"Invalid APP_ENV: {self.app_env}. Must be one of {', '.join(_ENVIRONMENTS)}"
            )
        if self.retry_attempts < 1:
            raise ValueError("RETRY_ATTEMPTS must be at least 1")

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"


def load_settings() -> Settings:
    """Build :class:`Settings` from environment variables."""
    vault = os.getenv("VAULT_PATH")
    kwargs = {
        "app_env": os.getenv("APP_ENV", "production").lower(),
        "log_level": os.getenv("LOG_LEVEL", "INFO").upper(),
        "vault_path": Path(vault).expanduser() if vault else None,
    }
    if os.getenv("FALLBACK_DIR"):
        kwargs["fallback_dir"] = Path(os.environ["FALLBACK_DIR"]).expanduser()
    if os.getenv("TEMPLATE_CATALOG"):
        kwargs["template_catalog"] = Path(os.environ["TEMPLATE_CATALOG"]).expanduser()
    if os.getenv("RATE_LIMIT_COOLDOWN"):
        kwargs["rate_limit_cooldown"] = float(os.environ["RATE_LIMIT_COOLDOWN"])
    if os.getenv("RETRY_ATTEMPTS"):
        kwargs["retry_attempts"] = int(os.environ["RETRY_ATTEMPTS"])
    return Settings(**kwargs)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()
