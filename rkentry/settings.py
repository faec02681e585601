"""
rkentry - Runtime Settings

Process-level settings read from environment variables with sensible
defaults. These drive the bootstrap machinery itself (override prefix,
flag name, locale, logging); adapter configuration lives in the boot
document.
"""
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


@dataclass
class LocaleSettings:
    """
    Deployment locale of the running process.

    Compared against entry locales of the form
    <realm>::<region>::<az>::<domain>.
    """
    realm: str = field(default_factory=lambda: os.getenv("REALM", ""))
    region: str = field(default_factory=lambda: os.getenv("REGION", ""))
    az: str = field(default_factory=lambda: os.getenv("AZ", ""))
    domain: str = field(default_factory=lambda: os.getenv("DOMAIN", ""))

    def as_tuple(self) -> tuple:
        return (self.realm, self.region, self.az, self.domain)


@dataclass
class LoggingSettings:
    """Logging configuration."""
    level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    format: str = field(default_factory=lambda: os.getenv("LOG_FORMAT", "json"))

    @property
    def json_format(self) -> bool:
        return self.format.lower() == "json"


@dataclass
class RuntimeSettings:
    """Main settings class combining all sub-settings."""
    env_prefix: str = field(default_factory=lambda: os.getenv("RK_ENV_PREFIX", "RK"))
    flag_name: str = field(default_factory=lambda: os.getenv("RK_FLAG_NAME", "rkset"))
    service_name: str = field(default_factory=lambda: os.getenv("RK_SERVICE_NAME", "rkentry"))
    service_version: str = field(default_factory=lambda: os.getenv("RK_SERVICE_VERSION", "0.0.0"))

    locale: LocaleSettings = field(default_factory=LocaleSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)

    def to_dict(self) -> Dict[str, Any]:
        """Convert settings to dictionary for diagnostics."""
        return {
            "env_prefix": self.env_prefix,
            "flag_name": self.flag_name,
            "service_name": self.service_name,
            "service_version": self.service_version,
            "locale": "::".join(self.locale.as_tuple()),
            "logging": {
                "level": self.logging.level,
                "format": self.logging.format,
            },
        }


# Singleton settings instance
_settings: Optional[RuntimeSettings] = None


def get_settings() -> RuntimeSettings:
    """Get or create settings singleton."""
    global _settings
    if _settings is None:
        _settings = RuntimeSettings()
    return _settings


def reload_settings() -> RuntimeSettings:
    """Reload settings from environment."""
    global _settings
    load_dotenv(override=True)
    _settings = RuntimeSettings()
    return _settings
