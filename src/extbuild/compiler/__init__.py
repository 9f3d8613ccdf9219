"""
Source compiler adapter for extbuild.

Wraps an external compiler and exposes the compiled project as an
asynchronous stream of CompiledUnits.
"""

from .adapter import (
    CommandCompilerBackend,
    CompiledOutput,
    CompilerBackend,
    CompileReport,
    CopyCompilerBackend,
    ProjectConfig,
    SourceCompiler,
)

__all__ = [
    "CommandCompilerBackend",
    "CompileReport",
    "CompiledOutput",
    "CompilerBackend",
    "CopyCompilerBackend",
    "ProjectConfig",
    "SourceCompiler",
]
