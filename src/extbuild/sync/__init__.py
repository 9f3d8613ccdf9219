"""
Translation exchange with Transifex.

- xliff: XLF 1.2 documents and conversion from/to build metadata
- client: async HTTP client for the Transifex API
- translations: push, pull and import operations
"""

from .client import TransifexClient
from .translations import ImportReport, PullReport, TranslationSync
from .xliff import (
    ExchangeUnit,
    TransUnit,
    XlfFile,
    exchange_unit_from_metadata,
    resource_bundles_from_exchange_unit,
)

__all__ = [
    "ExchangeUnit",
    "ImportReport",
    "PullReport",
    "TransUnit",
    "TransifexClient",
    "TranslationSync",
    "XlfFile",
    "exchange_unit_from_metadata",
    "resource_bundles_from_exchange_unit",
]
