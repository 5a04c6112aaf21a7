"""Configuration management for interchain.

Configuration Discovery Precedence (Highest to Lowest Priority):
===============================================================

1. **INTERCHAIN_CONFIG_DIR Environment Variable** (Highest Priority)
   - Looks for: `${INTERCHAIN_CONFIG_DIR}/interchain.yaml`
   - Use case: Development, testing, custom deployments

2. **~/.interchain Directory** (Fallback)
   - Looks for: `~/.interchain/interchain.yaml`
   - Use case: Default user installations

If no `interchain.yaml` is found, default configuration is applied.

Example `interchain.yaml`:
--------
interchain:
  debug: false
  max_incoming_interceptor_attempts: 10
  timeout: 30
  headers:
    accept: application/json
  retry:
    enabled: true
    retries: 3
    retryable_statuses: [500, 502, 503, 504]
  csrf:
    header: x-xsrf-token
  interceptors:
    - interchain.pipeline.interceptors.CsrfInterceptor
    - interceptor: interchain.pipeline.interceptors.StatusCheckInterceptor
      params:
        ok: [200, 201, 204]
"""

import importlib
import logging
import os
import threading
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from interchain.pipeline.guards import CSRF_METHODS, DEFAULT_RETRYABLE_STATUSES, KNOWN_METHODS
from interchain.pipeline.manager import DEFAULT_MAX_INCOMING_INTERCEPTOR_ATTEMPTS
from interchain.retry import DEFAULT_MAX_RETRIES

logger = logging.getLogger(__name__)


class RetryConfig(BaseModel):
    """Whole-request retry configuration."""

    enabled: bool = False
    """Retry failed requests"""

    retries: int = Field(default=DEFAULT_MAX_RETRIES, ge=0)
    """Retries allowed after the first attempt (0 = never retry)"""

    backoff: float = Field(default=0.0, ge=0)
    """Seconds to wait between attempts"""

    retryable_statuses: list[int] = Field(default_factory=lambda: sorted(DEFAULT_RETRYABLE_STATUSES))
    """Response statuses retried by the default predicate"""

    methods: list[str] = Field(default_factory=lambda: sorted(KNOWN_METHODS))
    """Methods that may be retried"""


class CsrfConfig(BaseModel):
    """CSRF interceptor configuration."""

    header: str = "x-xsrf-token"
    """Header carrying the CSRF token on requests and responses"""

    methods: list[str] = Field(default_factory=lambda: sorted(CSRF_METHODS))
    """Methods that receive the token"""


class InterchainConfig(BaseSettings):
    """Main configuration for interchain that reads from interchain.yaml."""

    model_config = SettingsConfigDict(
        env_prefix="INTERCHAIN_",
        case_sensitive=False,
        extra="ignore",
    )

    # Core settings
    debug: bool = False
    max_incoming_interceptor_attempts: int = Field(default=DEFAULT_MAX_INCOMING_INTERCEPTOR_ATTEMPTS, gt=0)
    timeout: float = 30.0

    # Default headers copied into every request
    headers: dict[str, str] = Field(default_factory=dict)

    retry: RetryConfig = Field(default_factory=RetryConfig)
    csrf: CsrfConfig = Field(default_factory=CsrfConfig)

    # Interceptor configurations (class import paths or dict with params)
    interceptors: list[str | dict[str, Any]] = Field(default_factory=list)

    def load_interceptors(self) -> list[Any]:
        """Instantiate interceptors from their import paths, in order.

        Returns:
            List of interceptor instances

        Raises:
            ImportError: If an interceptor class cannot be imported
            AttributeError: If the module has no such class
        """
        loaded = []
        for entry in self.interceptors:
            # Parse entry (string or dict format)
            if isinstance(entry, str):
                path = entry
                params: dict[str, Any] = {}
            else:
                path = entry.get("interceptor", "")
                params = entry.get("params", {}) or {}
                if not path:
                    logger.error(f"Interceptor entry missing 'interceptor' key: {entry}")
                    continue

            module_path, class_name = path.rsplit(".", 1)
            module = importlib.import_module(module_path)
            interceptor_class = getattr(module, class_name)
            loaded.append(interceptor_class(**params))
            logger.debug(f"Loaded interceptor: {path}" + (f" with params: {params}" if params else ""))
        return loaded

    @classmethod
    def from_yaml(cls, yaml_path: Path, **kwargs: Any) -> "InterchainConfig":
        """Load configuration from interchain.yaml file.

        Args:
            yaml_path: Path to the interchain.yaml file
            **kwargs: Additional keyword arguments

        Returns:
            InterchainConfig instance

        Raises:
            pydantic.ValidationError: If a value is invalid
        """
        data: dict[str, Any] = {}
        if yaml_path.exists():
            with yaml_path.open() as f:
                data = (yaml.safe_load(f) or {}).get("interchain", {}) or {}

        return cls(**{**data, **kwargs})


# Global configuration instance
_config_instance: InterchainConfig | None = None
_config_lock = threading.Lock()


def get_config() -> InterchainConfig:
    """Get the configuration instance."""
    global _config_instance

    if _config_instance is None:
        with _config_lock:
            # Double-check locking pattern
            if _config_instance is None:
                env_config_dir = os.environ.get("INTERCHAIN_CONFIG_DIR")
                if env_config_dir:
                    config_dir = Path(env_config_dir)
                    logger.info(f"Using config directory from environment: {config_dir}")
                else:
                    config_dir = Path.home() / ".interchain"

                yaml_path = config_dir / "interchain.yaml"
                if yaml_path.exists():
                    logger.info(f"Loading interchain config from: {yaml_path}")
                    _config_instance = InterchainConfig.from_yaml(yaml_path)
                else:
                    logger.debug(f"interchain.yaml not found at {yaml_path}, using default config")
                    _config_instance = InterchainConfig()

    return _config_instance


def set_config_instance(config: InterchainConfig) -> None:
    """Set the global configuration instance (for testing)."""
    global _config_instance
    _config_instance = config


def clear_config_instance() -> None:
    """Clear the global configuration instance (for testing)."""
    global _config_instance
    _config_instance = None
