"""Configuration manager for extbuild.

This module loads YAML configuration files, validates them against the
Pydantic schema and resolves project-relative paths.
"""

import logging
import os
from collections.abc import Mapping
from pathlib import Path

import yaml
from pydantic import ValidationError

from ..utils.core.exceptions import ConfigurationError
from .schema import ExtBuildConfig

logger = logging.getLogger(__name__)

TOKEN_ENV_VAR = "TRANSIFEX_API_TOKEN"


class ConfigManager:
    """
    Load and validate extbuild configuration.

    The loaded configuration is immutable; callers pass it on to the
    components they construct instead of keeping global state here.
    """

    @staticmethod
    def load_config(
        config_path: Path, environ: Mapping[str, str] | None = None
    ) -> ExtBuildConfig:
        """
        Load and validate configuration from a YAML file.

        Args:
            config_path: Path to the YAML configuration file
            environ: Environment used to resolve the API token (defaults to os.environ)

        Returns:
            ExtBuildConfig: Validated configuration object

        Raises:
            ConfigurationError: If the file is missing, not valid YAML, or fails validation
        """
        if not config_path.exists():
            raise ConfigurationError(
                f"Configuration file not found: {config_path}", context=config_path
            )

        try:
            with config_path.open("r", encoding="utf-8") as f:
                raw_config_data: object = yaml.safe_load(f)  # pyright: ignore[reportAny]
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Invalid YAML syntax in {config_path}: {e}", context=config_path
            ) from e

        if raw_config_data is None:
            config_data: dict[str, object] = {}
        elif isinstance(raw_config_data, dict):
            config_data = raw_config_data  # pyright: ignore[reportUnknownVariableType]
        else:
            raise ConfigurationError(
                f"Configuration file must contain a YAML dictionary, got {type(raw_config_data).__name__}",
                context=config_path,
            )

        return ConfigManager.from_dict(config_data, environ)

    @staticmethod
    def from_dict(
        config_data: Mapping[str, object], environ: Mapping[str, str] | None = None
    ) -> ExtBuildConfig:
        """
        Validate a configuration mapping, injecting the API token from the environment.

        Raises:
            ConfigurationError: If the mapping fails Pydantic validation
        """
        parsed_data = ConfigManager._inject_token(
            dict(config_data), os.environ if environ is None else environ
        )
        try:
            return ExtBuildConfig.model_validate(parsed_data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}", context=e) from e

    @staticmethod
    def _inject_token(
        config_data: dict[str, object], environ: Mapping[str, str]
    ) -> dict[str, object]:
        """Fill localization.transifex.api_token from the environment when unset."""
        token = environ.get(TOKEN_ENV_VAR)
        if not token:
            return config_data

        localization = config_data.get("localization")
        match localization:
            case None:
                localization_data: dict[str, object] = {}
            case dict():
                localization_data = dict(localization)  # pyright: ignore[reportUnknownArgumentType]
            case _:
                # Leave it to validation to report the wrong type
                return config_data

        transifex = localization_data.get("transifex")
        match transifex:
            case None:
                transifex_data: dict[str, object] = {}
            case dict():
                transifex_data = dict(transifex)  # pyright: ignore[reportUnknownArgumentType]
            case _:
                return config_data

        if not transifex_data.get("api_token"):
            transifex_data["api_token"] = token
            logger.debug(f"Using Transifex token from {TOKEN_ENV_VAR}")

        localization_data["transifex"] = transifex_data
        config_data["localization"] = localization_data
        return config_data


class ProjectPaths:
    """Absolute locations derived from the configuration and a project root."""

    def __init__(self, project_dir: Path, config: ExtBuildConfig) -> None:
        self.root: Path = project_dir.resolve()
        build = config.build
        self.project_config: Path = self.root / build.project_config
        self.out_dir: Path = self.root / build.out_dir
        self.i18n_dir: Path = self.root / build.i18n_dir
        self.dependency_root: Path = self.root / build.dependency_root
        self.package_nls_file: Path = self.root / build.package_nls_file
        self.metadata_file: Path = self.out_dir / "nls.metadata.json"
        self.metadata_header_file: Path = self.out_dir / "nls.metadata.header.json"
        name = config.extension.name
        self.localization_dir: Path = self.root.parent / f"{name}-localization"
        self.push_test_dir: Path = self.root.parent / f"{name}-push-test"

    def metadata_files(self) -> list[Path]:
        """Inputs of the XLF conversion, in the order the converter expects them."""
        files = [self.metadata_header_file, self.metadata_file]
        if self.package_nls_file.exists():
            files.insert(0, self.package_nls_file)
        return files
