"""Tests for localize call rewriting."""

from __future__ import annotations

import pytest

from extbuild.nls import rewrite_localize_calls
from extbuild.utils.core.exceptions import BundlingError

COMPILED = """"use strict";
Object.defineProperty(exports, "__esModule", { value: true });
const nls = require("vscode-nls");
const localize = nls.loadMessageBundle();
function greet(name) {
    return localize('greeting', 'Hello {0}', name);
}
function farewell() {
    return localize("farewell", "Goodbye");
}
"""


class TestRewriteLocalizeCalls:
    """Test cases for rewrite_localize_calls."""

    def test_rewrites_calls_in_source_order(self) -> None:
        text, metadata = rewrite_localize_calls(COMPILED, "out/extension.js")

        assert metadata is not None
        assert metadata.keys == ("greeting", "farewell")
        assert metadata.messages == ("Hello {0}", "Goodbye")
        assert "localize(0, null, name)" in text
        assert "localize(1, null)" in text
        assert "nls.loadMessageBundle(__filename)" in text
        assert "const localize = nls.loadMessageBundle" in text

    def test_file_without_strings_is_unchanged(self) -> None:
        source = 'const answer = 42;\nconsole.log("localize(this)");\n'
        text, metadata = rewrite_localize_calls(source, "out/answer.js")

        assert metadata is None
        assert text == source

    def test_bundle_without_calls_yields_empty_metadata(self) -> None:
        source = "const localize = nls.loadMessageBundle();\n"
        text, metadata = rewrite_localize_calls(source, "out/empty.js")

        assert metadata is not None
        assert len(metadata) == 0
        assert "loadMessageBundle(__filename)" in text

    def test_key_object_with_comment(self) -> None:
        source = (
            "localize({ key: 'open', comment: ['Shown in the menu', 'Keep it short'] },"
            " 'Open {0}', file);\n"
        )
        text, metadata = rewrite_localize_calls(source, "out/menu.js")

        assert metadata is not None
        assert metadata.keys == ("open",)
        assert metadata.comments == (("Shown in the menu", "Keep it short"),)
        assert text == "localize(0, null, file);\n"

    def test_concatenated_and_escaped_message(self) -> None:
        source = "localize('multi', 'Line one\\n' + \"it\\'s \\u0041\");\n"
        _, metadata = rewrite_localize_calls(source, "out/multi.js")

        assert metadata is not None
        assert metadata.messages == ("Line one\nit's A",)

    def test_calls_inside_strings_and_comments_ignored(self) -> None:
        source = (
            "// localize('commented', 'nope')\n"
            "/* localize('block', 'nope') */\n"
            "const s = \"localize('quoted', 'nope')\";\n"
            "localize('real', 'Yes');\n"
        )
        _, metadata = rewrite_localize_calls(source, "out/tricky.js")

        assert metadata is not None
        assert metadata.keys == ("real",)

    def test_property_named_localize_is_not_a_call(self) -> None:
        source = "const api = { localize: (k) => k };\nlocalize('real', 'Yes');\n"
        _, metadata = rewrite_localize_calls(source, "out/api.js")

        assert metadata is not None
        assert metadata.keys == ("real",)

    def test_quotes_inside_regex_literal(self) -> None:
        source = "const re = /[\"']/g;\nexports.strip = s => s.replace(re, '');\n"
        assert rewrite_localize_calls(source, "out/strip.js") == (source, None)

    def test_call_after_regex_literal(self) -> None:
        source = "const re = /it's/;\nconst a = localize('k', 'Hello');\n"
        rewritten, metadata = rewrite_localize_calls(source, "out/re.js")

        assert metadata is not None
        assert metadata.keys == ("k",)
        assert "localize(0, null)" in rewritten

    def test_division_is_not_a_regex(self) -> None:
        source = "const half = total / 2 / count;\nconst a = localize('k', 'Half');\n"
        _, metadata = rewrite_localize_calls(source, "out/math.js")

        assert metadata is not None
        assert metadata.messages == ("Half",)

    def test_method_definition_is_not_a_call(self) -> None:
        source = (
            "class Messages {\n"
            "    localize(key, message) {\n"
            "        return message;\n"
            "    }\n"
            "}\n"
        )
        assert rewrite_localize_calls(source, "out/messages.js") == (source, None)

    def test_duplicate_key_is_fatal(self) -> None:
        source = "localize('same', 'One');\nlocalize('same', 'Two');\n"
        with pytest.raises(BundlingError, match="duplicate localize key 'same'") as exc_info:
            _ = rewrite_localize_calls(source, "out/dup.js")
        assert "out/dup.js:2" in str(exc_info.value)

    def test_non_literal_key_is_fatal(self) -> None:
        with pytest.raises(BundlingError, match="string literal"):
            _ = rewrite_localize_calls("localize(key, 'Message');\n", "out/bad.js")

    def test_missing_message_is_fatal(self) -> None:
        with pytest.raises(BundlingError, match="no default message"):
            _ = rewrite_localize_calls("localize('lonely');\n", "out/bad.js")

    def test_rewrite_is_deterministic(self) -> None:
        first = rewrite_localize_calls(COMPILED, "out/extension.js")
        second = rewrite_localize_calls(COMPILED, "out/extension.js")
        assert first == second
