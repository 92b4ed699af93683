"""Configuration loader for service credentials, endpoints and polling."""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)


@dataclass
class ServiceSettings:
    """Credentials and endpoint names for the two remote endpoints.

    Every value is optional at startup; the session resolves what it needs
    lazily and reports whatever is missing at that point.
    """

    authoring_key: str | None = None
    resource_name: str | None = None
    application_name: str | None = None
    knowledge_base_id: str | None = None
    query_key: str | None = None
    request_timeout: float = 30.0

    @property
    def management_endpoint(self) -> str | None:
        if not self.resource_name:
            return None
        return f"https://{self.resource_name}.cognitiveservices.azure.com"

    @property
    def runtime_endpoint(self) -> str | None:
        if not self.application_name:
            return None
        return f"https://{self.application_name}.azurewebsites.net"


@dataclass
class PollingSettings:
    """How long-running operations are polled."""

    interval: float = 5.0
    max_attempts: int = 20
    timeout: float | None = None
    retry_transport_errors: bool = True


# YAML key -> environment variable that overrides it
ENV_OVERRIDES = {
    "authoring_key": "QNA_AUTHORING_KEY",
    "resource_name": "QNA_RESOURCE_NAME",
    "application_name": "QNA_APPLICATION_NAME",
    "knowledge_base_id": "QNA_KNOWLEDGE_BASE_ID",
    "query_key": "QNA_QUERY_ENDPOINT_KEY",
}


def _blank_to_none(value: Any) -> str | None:
    """Normalize empty configuration strings to None."""
    if value is None:
        return None
    value = str(value).strip()
    return value or None


class ConfigLoader:
    """Loads and manages client configuration."""

    def __init__(self, config_dir: str | None = None, env_file: str | None = None):
        """Initialize configuration loader.

        Args:
            config_dir: Directory containing qna.yaml (default: ./config)
            env_file: Path to .env file (default: ./.env)
        """
        self.config_dir = Path(config_dir or "config")
        self.env_file = Path(env_file or ".env")

        if self.env_file.exists():
            load_dotenv(self.env_file)
            logger.info(f"Loaded environment from {self.env_file}")
        else:
            logger.debug(f"Environment file not found: {self.env_file}")

        raw = self._load_yaml()
        self.service = self._load_service(raw.get("service") or {})
        self.polling = self._load_polling(raw.get("polling") or {})

    def _load_yaml(self) -> dict[str, Any]:
        """Load qna.yaml, or an empty mapping when it is absent."""
        config_file = self.config_dir / "qna.yaml"

        if not config_file.exists():
            logger.warning(f"Config not found: {config_file}, using environment and defaults")
            return {}

        with open(config_file) as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ValueError(f"{config_file} must contain a mapping at the top level")

        logger.info(f"Loaded configuration from {config_file}")
        return data

    def _load_service(self, data: dict[str, Any]) -> ServiceSettings:
        values: dict[str, Any] = {}
        for key, env_var in ENV_OVERRIDES.items():
            env_value = os.getenv(env_var)
            values[key] = _blank_to_none(env_value if env_value is not None else data.get(key))

        timeout = os.getenv("QNA_REQUEST_TIMEOUT") or data.get("request_timeout", 30.0)
        settings = ServiceSettings(request_timeout=float(timeout), **values)

        missing = [k for k in ("authoring_key", "resource_name") if getattr(settings, k) is None]
        if missing:
            # Not fatal: tests and offline tooling construct clients by hand
            logger.warning(f"Service settings missing: {missing}")

        return settings

    def _load_polling(self, data: dict[str, Any]) -> PollingSettings:
        timeout = data.get("timeout")
        settings = PollingSettings(
            interval=float(data.get("interval", 5.0)),
            max_attempts=int(data.get("max_attempts", 20)),
            timeout=float(timeout) if timeout is not None else None,
            retry_transport_errors=bool(data.get("retry_transport_errors", True)),
        )

        if settings.max_attempts < 1:
            raise ValueError("polling.max_attempts must be at least 1")
        if settings.interval < 0:
            raise ValueError("polling.interval must not be negative")

        return settings
