"""
extbuild - release build orchestration for editor extensions.

Compiles extension sources, externalizes and bundles localized strings,
verifies dependencies, synchronizes translations with Transifex and drives
the packager.
"""

__version__ = "1.0.0"
