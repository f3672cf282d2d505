"""Configuration manager for loading and validating .assetpub.yml"""

import copy
import logging
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from pydantic import ValidationError

from assetpub.domain.config import (
    AppConfig,
    BuildConfig,
    CredentialsConfig,
    DatabaseConfig,
    RetryPolicy,
    StorageConfig,
)
from assetpub.domain.errors import ConfigurationError, MissingEnvironmentError

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = ".assetpub.yml"

# Environment variable -> (section, ..., field) path in the config dictionary
ENV_OVERRIDES = {
    "RELEASE_QUALITY": ("build", "quality"),
    "CDN_URL": ("storage", "primary", "cdn_url"),
    "MIRROR_CDN_URL": ("storage", "mirror", "cdn_url"),
    "DOCUMENTDB_ENDPOINT": ("database", "endpoint"),
    "AZURE_TENANT_ID": ("credentials", "primary", "tenant_id"),
    "AZURE_CLIENT_ID": ("credentials", "primary", "client_id"),
    "AZURE_CLIENT_SECRET": ("credentials", "primary", "client_secret"),
    "MIRROR_TENANT_ID": ("credentials", "mirror", "tenant_id"),
    "MIRROR_CLIENT_ID": ("credentials", "mirror", "client_id"),
    "MIRROR_CLIENT_SECRET": ("credentials", "mirror", "client_secret"),
}


class ConfigManager:
    """Manages configuration from .assetpub.yml and environment variables

    Loads configuration with validation using Pydantic models. Configuration priority:
    1. Default values (defined in Pydantic models)
    2. .assetpub.yml file (searched from current directory)
    3. Environment variables (RELEASE_*, AZURE_*, MIRROR_*, ...)
    4. CLI arguments (handled by CLI layer)

    The environment is read once, here; the rest of the application only
    sees the resulting AppConfig.
    """

    def __init__(self, config_path: Optional[Path] = None, environ: Optional[Mapping[str, str]] = None):
        """Initialize config manager

        Args:
            config_path: Path to .assetpub.yml (searches from current dir if None)
            environ: Environment mapping (defaults to os.environ)

        Raises:
            ConfigurationError: If configuration validation fails
        """
        if isinstance(config_path, str):
            config_path = Path(config_path)
        self.environ = os.environ if environ is None else environ
        self.config_path = config_path or self._find_config_file()
        try:
            self.config: AppConfig = self._load_config()
        except ValidationError as e:
            errors = []
            for error in e.errors():
                field = ".".join(str(x) for x in error["loc"])
                msg = error["msg"]
                errors.append(f"  - {field}: {msg}")
            raise ConfigurationError(
                "Configuration validation failed:\n" + "\n".join(errors)
            ) from e

    def _find_config_file(self) -> Optional[Path]:
        """Find .assetpub.yml starting from current directory

        Returns:
            Path to config file or None if not found
        """
        current = Path.cwd()
        for parent in [current] + list(current.parents):
            config_file = parent / CONFIG_FILE_NAME
            if config_file.exists():
                logger.info(f"Found config file: {config_file}")
                return config_file
        logger.debug(f"No {CONFIG_FILE_NAME} found, using defaults")
        return None

    def _load_config(self) -> AppConfig:
        """Load configuration from file and environment and validate with Pydantic

        Raises:
            ValidationError: If configuration is invalid
            ConfigurationError: If the config file cannot be parsed
        """
        config_dict: Dict[str, Any] = AppConfig().model_dump(exclude_none=True)
        # Secrets are dumped masked, start the credentials section empty
        config_dict["credentials"] = {"primary": {}, "mirror": {}}

        if self.config_path and self.config_path.exists():
            try:
                with open(self.config_path, "r", encoding="utf-8") as f:
                    file_config = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Failed to parse {self.config_path}: {e}") from e
            if not isinstance(file_config, dict):
                raise ConfigurationError(f"{self.config_path} must contain a mapping")
            config_dict = self._merge_config(config_dict, file_config)
            logger.info(f"Loaded configuration from {self.config_path}")

        config_dict = self._apply_env_overrides(config_dict)
        return AppConfig(**config_dict)

    def _merge_config(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively merge configuration dictionaries"""
        result = copy.deepcopy(base)
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_config(result[key], value)
            else:
                result[key] = value
        return result

    def _apply_env_overrides(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """Apply environment variable overrides"""
        for name, path in ENV_OVERRIDES.items():
            value = self.environ.get(name)
            if value:
                section = config
                for key in path[:-1]:
                    section = section.setdefault(key, {})
                section[path[-1]] = value

        # An explicit distro commit wins over the pipeline's source version
        commit = self.environ.get("RELEASE_COMMIT") or self.environ.get("BUILD_SOURCEVERSION")
        if commit:
            config["build"]["commit"] = commit

        publish_to_mirror = self.environ.get("PUBLISH_TO_MIRROR")
        if publish_to_mirror is not None:
            config["storage"]["publish_to_mirror"] = "true" in publish_to_mirror.lower()

        return config

    def get_build_config(self) -> BuildConfig:
        return self.config.build

    def get_storage_config(self) -> StorageConfig:
        return self.config.storage

    def get_database_config(self) -> DatabaseConfig:
        return self.config.database

    def get_credentials_config(self) -> CredentialsConfig:
        return self.config.credentials

    def get_retry_policy(self) -> RetryPolicy:
        return self.config.retry

    def require_build(self) -> BuildConfig:
        """Build config with quality and commit both present

        Raises:
            MissingEnvironmentError: If quality or commit is missing
        """
        build = self.config.build
        if not build.quality:
            raise MissingEnvironmentError("RELEASE_QUALITY")
        if not build.commit:
            raise MissingEnvironmentError("BUILD_SOURCEVERSION")
        return build
