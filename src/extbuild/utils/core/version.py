"""
Version information for extbuild.
"""

import logging
from functools import lru_cache
from importlib.metadata import PackageNotFoundError, version

logger = logging.getLogger(__name__)

DISTRIBUTION_NAME = "extbuild"


@lru_cache(maxsize=1)
def get_version() -> str:
    """
    Get the installed version of extbuild.

    Falls back to the version declared in the package when the distribution
    metadata is not available, for example when running from a source tree.
    """
    try:
        return version(DISTRIBUTION_NAME)
    except PackageNotFoundError:
        logger.debug("Distribution metadata not found, using package version")

    from ... import __version__

    return __version__
