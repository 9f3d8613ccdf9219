"""Project configuration: schema, loading and derived paths."""

from .manager import TOKEN_ENV_VAR, ConfigManager, ProjectPaths
from .schema import (
    DEFAULT_LANGUAGES,
    BuildConfig,
    CompilerConfig,
    ExtBuildConfig,
    ExtensionConfig,
    LanguageTarget,
    LocalizationConfig,
    SyncConfig,
    ToolsConfig,
    TransifexConfig,
)

__all__ = [
    "DEFAULT_LANGUAGES",
    "TOKEN_ENV_VAR",
    "BuildConfig",
    "CompilerConfig",
    "ConfigManager",
    "ExtBuildConfig",
    "ExtensionConfig",
    "LanguageTarget",
    "LocalizationConfig",
    "ProjectPaths",
    "SyncConfig",
    "ToolsConfig",
    "TransifexConfig",
]
