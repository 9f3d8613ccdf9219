"""
Global test configuration fixtures for extbuild tests.

This module provides a small extension project on disk together with the
configuration objects that describe it, so tests can run real tasks against
a temporary directory.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path

import pytest

from extbuild.config.manager import ConfigManager, ProjectPaths
from extbuild.config.schema import ExtBuildConfig, LanguageTarget

EXTENSION_NAME = "sample-ext"
BUNDLE_ID = "publisher.sample-ext"

LOCALIZED_SOURCE = """import * as nls from 'vscode-nls';
const localize = nls.loadMessageBundle();

export function greet(name: string): string {
    return localize('greeting', 'Hello {0}', name);
}
"""

PLAIN_SOURCE = "export const answer = 42;\n"

PACKAGE_NLS = {
    "extension.displayName": "Sample Extension",
    "extension.description": "A sample extension",
}


def make_config_dict(**sections: object) -> dict[str, object]:
    """Minimal valid configuration mapping with the given sections added."""
    data: dict[str, object] = {
        "extension": {"name": EXTENSION_NAME, "bundle_id": BUNDLE_ID},
    }
    data.update(sections)
    return data


@pytest.fixture
def config_dict() -> Callable[..., dict[str, object]]:
    """Factory for configuration mappings, see make_config_dict."""
    return make_config_dict


@pytest.fixture
def languages() -> tuple[LanguageTarget, ...]:
    """French and German, the two languages most tests localize into."""
    return (
        LanguageTarget(id="fr", folder_name="fra"),
        LanguageTarget(id="de", folder_name="deu"),
    )


@pytest.fixture
def config(languages: tuple[LanguageTarget, ...]) -> ExtBuildConfig:
    """Configuration with two languages and a token for the translation service."""
    return ConfigManager.from_dict(
        make_config_dict(
            build={"scripts": ["src/terminateProcess.sh"]},
            localization={
                "languages": [language.model_dump() for language in languages],
                "transifex": {"api_token": "test-token"},
            },
        ),
        environ={},
    )


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """
    Create an extension project.

    Layout::

        sample-ext/
            tsconfig.json
            package.nls.json
            src/extension.ts        (one localized string)
            src/util/answer.ts      (no localized strings)
            src/terminateProcess.sh
            node_modules/alpha/
            node_modules/beta/
    """
    root = tmp_path / EXTENSION_NAME
    (root / "src" / "util").mkdir(parents=True)
    _ = (root / "tsconfig.json").write_text(
        """{
    // compiler options of the sample project
    "compilerOptions": {
        "rootDir": "src",
        "outDir": "out",
        "sourceMap": false,
    },
}
""",
        encoding="utf-8",
    )
    _ = (root / "package.nls.json").write_text(json.dumps(PACKAGE_NLS), encoding="utf-8")
    _ = (root / "src" / "extension.ts").write_text(LOCALIZED_SOURCE, encoding="utf-8")
    _ = (root / "src" / "util" / "answer.ts").write_text(PLAIN_SOURCE, encoding="utf-8")
    _ = (root / "src" / "terminateProcess.sh").write_text("#!/bin/sh\n", encoding="utf-8")
    for module in ("alpha", "beta"):
        (root / "node_modules" / module).mkdir(parents=True)
    return root


@pytest.fixture
def paths(project_dir: Path, config: ExtBuildConfig) -> ProjectPaths:
    return ProjectPaths(project_dir, config)
