"""
Rewrite localize calls in compiled JavaScript.

``localize('key', 'Default message', arg)`` becomes ``localize(0, null, arg)``
where 0 is the position of the key in the file's metadata. The key may also be
given as ``{ key: 'key', comment: ['note for translators'] }``.
``loadMessageBundle()`` becomes ``loadMessageBundle(__filename)`` so the
runtime can locate the generated resources.

The scanner understands strings, template literals, regular expression
literals and comments, which is enough to find call sites in compiler output
without a full JavaScript parser. Method definitions named localize are not
call sites.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from ..units import FileMetadata
from ..utils.core.exceptions import BundlingError

LOCALIZE = "localize"
LOAD_MESSAGE_BUNDLE = "loadMessageBundle"

_SIMPLE_ESCAPES = {
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "b": "\b",
    "f": "\f",
    "v": "\v",
    "0": "\0",
}


# After these a slash starts a regular expression literal, not a division.
_REGEX_PRECEDING_CHARS = frozenset("(,=:[!&|?{};+-*%<>~^")
_REGEX_PRECEDING_WORDS = frozenset(
    {
        "return",
        "typeof",
        "instanceof",
        "in",
        "of",
        "new",
        "delete",
        "void",
        "throw",
        "case",
        "do",
        "else",
        "yield",
        "await",
    }
)


def _is_ident_start(c: str) -> bool:
    return c.isalpha() or c in "_$"


def _is_ident_char(c: str) -> bool:
    return c.isalnum() or c in "_$"


@dataclass
class _Extraction:
    keys: list[str] = field(default_factory=list)
    messages: list[str] = field(default_factory=list)
    comments: list[tuple[str, ...]] = field(default_factory=list)
    bundle_loaded: bool = False


class _Scanner:
    """Cursor over JavaScript source."""

    def __init__(self, text: str, path: str) -> None:
        self.text: str = text
        self.path: str = path
        self.pos: int = 0

    def error(self, message: str) -> BundlingError:
        line = self.text.count("\n", 0, self.pos) + 1
        return BundlingError(f"{self.path}:{line}: {message}", path=self.path)

    def peek(self, offset: int = 0) -> str:
        index = self.pos + offset
        return self.text[index] if index < len(self.text) else ""

    def skip_trivia(self) -> None:
        """Skip whitespace and comments."""
        text = self.text
        while self.pos < len(text):
            c = text[self.pos]
            if c.isspace():
                self.pos += 1
            elif text.startswith("//", self.pos):
                end = text.find("\n", self.pos)
                self.pos = len(text) if end == -1 else end + 1
            elif text.startswith("/*", self.pos):
                end = text.find("*/", self.pos + 2)
                if end == -1:
                    raise self.error("unterminated comment")
                self.pos = end + 2
            else:
                return

    def read_identifier(self) -> str:
        start = self.pos
        while self.pos < len(self.text) and _is_ident_char(self.text[self.pos]):
            self.pos += 1
        return self.text[start : self.pos]

    def skip_string(self) -> None:
        _ = self.read_string()

    def read_string(self) -> str:
        """Read a quoted string or template literal and return its value."""
        quote = self.text[self.pos]
        self.pos += 1
        chars: list[str] = []
        text = self.text
        while self.pos < len(text):
            c = text[self.pos]
            if c == quote:
                self.pos += 1
                return "".join(chars)
            if c == "\\":
                try:
                    chars.append(self._read_escape())
                except ValueError:
                    raise self.error("invalid escape sequence") from None
                continue
            if quote == "`" and text.startswith("${", self.pos):
                raise self.error("template literal with substitutions")
            if c == "\n" and quote != "`":
                break
            chars.append(c)
            self.pos += 1
        raise self.error("unterminated string literal")

    def _read_escape(self) -> str:
        text = self.text
        self.pos += 1
        c = self.peek()
        self.pos += 1
        if c in _SIMPLE_ESCAPES:
            return _SIMPLE_ESCAPES[c]
        if c == "x":
            digits = text[self.pos : self.pos + 2]
            self.pos += 2
            return chr(int(digits, 16))
        if c == "u":
            if self.peek() == "{":
                end = text.index("}", self.pos)
                digits = text[self.pos + 1 : end]
                self.pos = end + 1
            else:
                digits = text[self.pos : self.pos + 4]
                self.pos += 4
            return chr(int(digits, 16))
        if c == "\r" and self.peek() == "\n":
            self.pos += 1
            return ""
        if c in "\n\r\u2028\u2029":
            return ""
        return c

    def skip_regex(self) -> bool:
        """
        Skip a regular expression literal starting at the current slash.

        Returns False, leaving the position unchanged, when the line ends
        before the closing slash.
        """
        text = self.text
        start = self.pos
        self.pos += 1
        in_class = False
        while self.pos < len(text):
            c = text[self.pos]
            if c == "\\":
                self.pos += 2
                continue
            if c == "\n":
                break
            if c == "[":
                in_class = True
            elif c == "]":
                in_class = False
            elif c == "/" and not in_class:
                self.pos += 1
                _ = self.read_identifier()
                return True
            self.pos += 1
        self.pos = start
        return False

    def is_method_definition(self) -> bool:
        """Check whether the parameter list at the current '(' opens a method body."""
        start = self.pos
        text = self.text
        depth = 0
        try:
            while self.pos < len(text):
                c = text[self.pos]
                if c in ("'", '"', "`"):
                    self.skip_template_or_string()
                    continue
                if text.startswith("//", self.pos) or text.startswith("/*", self.pos):
                    self.skip_trivia()
                    continue
                self.pos += 1
                if c == "(":
                    depth += 1
                elif c == ")":
                    depth -= 1
                    if depth == 0:
                        self.skip_trivia()
                        return self.peek() == "{"
            return False
        except BundlingError:
            return False
        finally:
            self.pos = start

    def skip_template_or_string(self) -> None:
        """Skip any literal, including templates with substitutions."""
        quote = self.text[self.pos]
        if quote != "`":
            self.skip_string()
            return
        self.pos += 1
        depth = 0
        text = self.text
        while self.pos < len(text):
            c = text[self.pos]
            if c == "\\":
                self.pos += 2
            elif depth == 0 and c == "`":
                self.pos += 1
                return
            elif text.startswith("${", self.pos):
                depth += 1
                self.pos += 2
            elif depth and c == "}":
                depth -= 1
                self.pos += 1
            elif depth and c in "'\"`":
                self.skip_template_or_string()
            else:
                self.pos += 1
        raise self.error("unterminated template literal")

    def read_string_expression(self, what: str) -> str:
        """Read one string literal or a '+' concatenation of literals."""
        parts: list[str] = []
        while True:
            self.skip_trivia()
            if self.peek() not in ("'", '"', "`"):
                raise self.error(f"{what} must be a string literal")
            parts.append(self.read_string())
            self.skip_trivia()
            if self.peek() != "+":
                return "".join(parts)
            self.pos += 1

    def read_key_object(self) -> tuple[str, tuple[str, ...]]:
        """Read ``{ key: '...', comment: ['...'] }``."""
        self.pos += 1
        key: str | None = None
        comments: tuple[str, ...] = ()
        while True:
            self.skip_trivia()
            c = self.peek()
            if c == "}":
                self.pos += 1
                break
            if c in ("'", '"'):
                name = self.read_string()
            elif _is_ident_start(c):
                name = self.read_identifier()
            else:
                raise self.error("malformed localize key object")
            self.skip_trivia()
            if self.peek() != ":":
                raise self.error("malformed localize key object")
            self.pos += 1
            self.skip_trivia()
            if name == "key":
                key = self.read_string_expression("localize key")
            elif name == "comment":
                comments = self._read_string_array()
            else:
                raise self.error(f"unexpected property '{name}' in localize key object")
            self.skip_trivia()
            if self.peek() == ",":
                self.pos += 1
        if key is None:
            raise self.error("localize key object has no 'key' property")
        return key, comments

    def _read_string_array(self) -> tuple[str, ...]:
        if self.peek() != "[":
            raise self.error("localize comment must be an array of strings")
        self.pos += 1
        items: list[str] = []
        while True:
            self.skip_trivia()
            if self.peek() == "]":
                self.pos += 1
                return tuple(items)
            items.append(self.read_string_expression("localize comment"))
            self.skip_trivia()
            if self.peek() == ",":
                self.pos += 1


def rewrite_localize_calls(text: str, path: str) -> tuple[str, FileMetadata | None]:
    """
    Rewrite the localize call sites of one compiled file.

    Args:
        text: Compiled JavaScript
        path: File path used in error messages

    Returns:
        The rewritten text and the extracted metadata, or the unchanged text and
        None when the file does not use localize or loadMessageBundle

    Raises:
        BundlingError: On a malformed call or a duplicate key
    """
    scanner = _Scanner(text, path)
    extraction = _Extraction()
    pieces: list[str] = []
    copied_to = 0
    previous_word = ""
    previous_char = ""

    while scanner.pos < len(text):
        c = text[scanner.pos]
        if c in ("'", '"', "`"):
            scanner.skip_template_or_string()
            previous_char = c
            continue
        if text.startswith("//", scanner.pos) or text.startswith("/*", scanner.pos):
            scanner.skip_trivia()
            continue
        if c == "/":
            if previous_word:
                regex_allowed = previous_word in _REGEX_PRECEDING_WORDS
            else:
                regex_allowed = not previous_char or previous_char in _REGEX_PRECEDING_CHARS
            if regex_allowed and scanner.skip_regex():
                previous_char = "/"
                previous_word = ""
                continue
        if not _is_ident_start(c):
            if not c.isspace():
                previous_char = c
                previous_word = ""
            scanner.pos += 1
            continue

        word = scanner.read_identifier()
        is_declaration = previous_word in ("function", "const", "let", "var")
        # A property named localize in an object literal is not a call site.
        is_property_name = previous_char in ("{", ",") and scanner.peek() == ":"
        previous_word = word
        previous_char = ""
        if word not in (LOCALIZE, LOAD_MESSAGE_BUNDLE) or is_declaration or is_property_name:
            continue

        after_name = scanner.pos
        scanner.skip_trivia()
        if scanner.peek() != "(" or scanner.is_method_definition():
            scanner.pos = after_name
            continue
        scanner.pos += 1
        args_start = scanner.pos

        if word == LOAD_MESSAGE_BUNDLE:
            scanner.skip_trivia()
            extraction.bundle_loaded = True
            if scanner.peek() == ")":
                pieces.append(text[copied_to:args_start])
                pieces.append("__filename")
                copied_to = scanner.pos
            continue

        key, comments = _read_key(scanner)
        scanner.skip_trivia()
        if scanner.peek() != ",":
            raise scanner.error(f"localize('{key}') has no default message")
        scanner.pos += 1
        message = scanner.read_string_expression("localize message")

        if key in extraction.keys:
            raise scanner.error(f"duplicate localize key '{key}'")
        index = len(extraction.keys)
        extraction.keys.append(key)
        extraction.messages.append(message)
        extraction.comments.append(comments)

        pieces.append(text[copied_to:args_start])
        pieces.append(f"{index}, null")
        copied_to = scanner.pos
        previous_char = ""

    if not extraction.keys and not extraction.bundle_loaded:
        return text, None

    pieces.append(text[copied_to:])
    metadata = FileMetadata(
        keys=tuple(extraction.keys),
        messages=tuple(extraction.messages),
        comments=tuple(extraction.comments),
    )
    return "".join(pieces), metadata


def _read_key(scanner: _Scanner) -> tuple[str, tuple[str, ...]]:
    scanner.skip_trivia()
    c = scanner.peek()
    if c == "{":
        key, comments = scanner.read_key_object()
    elif c in ("'", '"', "`"):
        key, comments = scanner.read_string_expression("localize key"), ()
    else:
        raise scanner.error("localize key must be a string literal or a key object")
    if not key:
        raise scanner.error("localize key must not be empty")
    return key, comments
