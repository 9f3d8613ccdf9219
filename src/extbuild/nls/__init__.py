"""
Localization bundling for extbuild.

This package externalizes user-visible strings from compiled output:
- rewrite: localize call rewriting and string extraction
- metadata: the metadata bundle and translation merging
- stages: the four pipeline stages and the strategy selection
- package_nls: localized copies of package.nls.json
"""

from .metadata import MetadataBundle, localize_messages, parse_translations
from .package_nls import create_package_language_files, read_package_nls
from .rewrite import rewrite_localize_calls
from .stages import (
    METADATA_FILE,
    METADATA_HEADER_FILE,
    BundleLanguageFiles,
    BundleMetadataFiles,
    CreateAdditionalLanguageFiles,
    LocalizationPipeline,
    LocalizationStrategy,
    RewriteLocalizeCalls,
    create_localization_pipeline,
    i18n_file,
    nls_file,
)

__all__ = [
    "METADATA_FILE",
    "METADATA_HEADER_FILE",
    "BundleLanguageFiles",
    "BundleMetadataFiles",
    "CreateAdditionalLanguageFiles",
    "LocalizationPipeline",
    "LocalizationStrategy",
    "MetadataBundle",
    "RewriteLocalizeCalls",
    "create_localization_pipeline",
    "create_package_language_files",
    "i18n_file",
    "localize_messages",
    "nls_file",
    "parse_translations",
    "read_package_nls",
    "rewrite_localize_calls",
]
