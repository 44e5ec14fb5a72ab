"""
Process configuration for RDF-SearchBase.

Settings are read from ``RDFSEARCHBASE_*`` environment variables, with an
optional ``.env`` file loaded first. They are resolved once at start-up
and passed to the components that need them.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

ENV_PREFIX = "RDFSEARCHBASE_"

BACKENDS = ("local", "elasticsearch")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ConfigValidationError(Exception):
    """Raised when settings are invalid."""
    pass


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def _as_int(name: str, value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigValidationError(f"{name} must be an integer, got {value!r}") from None


@dataclass
class Settings:
    """Runtime settings."""
    backend: str = "local"
    es_node: Optional[str] = None
    es_username: Optional[str] = None
    es_password: Optional[str] = None
    data_dir: Optional[Path] = Path("./data")
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    upsert: bool = False
    batch_size: int = 1
    default_size: int = 10
    base_iri: Optional[str] = None
    log_level: str = "INFO"

    def validate(self) -> None:
        """
        Check the settings for consistency.

        Raises:
            ConfigValidationError: On the first invalid setting
        """
        if self.backend not in BACKENDS:
            raise ConfigValidationError(f"backend must be one of {', '.join(BACKENDS)}, got {self.backend!r}")
        if self.backend == "elasticsearch" and not self.es_node:
            raise ConfigValidationError("es_node is required for the elasticsearch backend")
        if self.batch_size < 1:
            raise ConfigValidationError("batch_size must be at least 1")
        if self.default_size < 1:
            raise ConfigValidationError("default_size must be at least 1")
        if self.log_level not in LOG_LEVELS:
            raise ConfigValidationError(f"log_level must be one of {', '.join(LOG_LEVELS)}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "backend": self.backend,
            "es_node": self.es_node,
            "es_username": self.es_username,
            "es_password": "***" if self.es_password else None,
            "data_dir": str(self.data_dir) if self.data_dir else None,
            "cors_origins": list(self.cors_origins),
            "upsert": self.upsert,
            "batch_size": self.batch_size,
            "default_size": self.default_size,
            "base_iri": self.base_iri,
            "log_level": self.log_level,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Settings":
        data_dir = data.get("data_dir", "./data")
        origins = data.get("cors_origins", ["*"])
        if isinstance(origins, str):
            origins = [o.strip() for o in origins.split(",") if o.strip()]
        settings = cls(
            backend=str(data.get("backend", "local")).lower(),
            es_node=data.get("es_node") or None,
            es_username=data.get("es_username") or None,
            es_password=data.get("es_password") or None,
            data_dir=Path(data_dir) if data_dir else None,
            cors_origins=list(origins),
            upsert=_as_bool(data.get("upsert", False)),
            batch_size=_as_int("batch_size", data.get("batch_size", 1)),
            default_size=_as_int("default_size", data.get("default_size", 10)),
            base_iri=data.get("base_iri") or None,
            log_level=str(data.get("log_level", "INFO")).upper(),
        )
        settings.validate()
        return settings

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        dotenv_path: Optional[str] = None,
    ) -> "Settings":
        """
        Build settings from the environment.

        Args:
            environ: Mapping to read instead of os.environ (no .env loading)
            dotenv_path: Explicit .env file; by default one is searched for
        """
        if environ is None:
            load_dotenv(dotenv_path)
            environ = os.environ
        data = {
            key[len(ENV_PREFIX):].lower(): value
            for key, value in environ.items()
            if key.startswith(ENV_PREFIX)
        }
        settings = cls.from_dict(data)
        logger.debug(f"Settings: {settings.to_dict()}")
        return settings

    def configure_logging(self) -> None:
        """Configure the root logger for a process entry point."""
        logging.basicConfig(
            level=getattr(logging, self.log_level),
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
