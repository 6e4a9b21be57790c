"""Streaming markup tokenizer.

Markup is fed chunk by chunk and tokens come out in document order. No tree
is built, so unbalanced or cut-off pages still produce every token that was
readable before the damage.
"""
from dataclasses import dataclass, field
from enum import Enum
from html.parser import HTMLParser
from typing import Iterable, Iterator, Optional, Union

from bs4 import UnicodeDammit

from errors import ParseTruncated


class TokenKind(str, Enum):
    START = "start"
    END = "end"
    TEXT = "text"


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    tag: str = ""
    attrs: dict[str, str] = field(default_factory=dict)
    text: str = ""

    def attr(self, name: str, default: str = "") -> str:
        return self.attrs.get(name, default)


def _attr_map(attrs: list[tuple[str, Optional[str]]]) -> dict[str, str]:
    # First occurrence wins, as in browsers. Bare attributes map to "".
    result: dict[str, str] = {}
    for key, value in attrs:
        result.setdefault(key, value or "")
    return result


class _TokenCollector(HTMLParser):
    def __init__(self):
        super().__init__(convert_charrefs=True)
        self.tokens: list[Token] = []

    def handle_starttag(self, tag, attrs):
        self.tokens.append(Token(TokenKind.START, tag, _attr_map(attrs)))

    def handle_startendtag(self, tag, attrs):
        self.handle_starttag(tag, attrs)

    def handle_endtag(self, tag):
        self.tokens.append(Token(TokenKind.END, tag))

    def handle_data(self, data):
        self.tokens.append(Token(TokenKind.TEXT, text=data))

    def drain(self) -> list[Token]:
        tokens, self.tokens = self.tokens, []
        return tokens


def tokenize(markup: Union[str, Iterable[str]]) -> Iterator[Token]:
    """Yield tokens for ``markup``, a string or an iterable of string chunks.

    If the underlying parser gives up, every token produced so far is yielded
    and then ParseTruncated is raised.
    """
    chunks = (markup,) if isinstance(markup, str) else markup
    parser = _TokenCollector()
    for chunk in chunks:
        try:
            parser.feed(chunk)
        except (AssertionError, ValueError) as e:
            yield from parser.drain()
            raise ParseTruncated(f"tokenizer stopped: {e}") from e
        yield from parser.drain()
    try:
        parser.close()
    except (AssertionError, ValueError) as e:
        yield from parser.drain()
        raise ParseTruncated(f"tokenizer stopped at end of input: {e}") from e
    yield from parser.drain()


def decode_body(content: bytes, declared_encoding: Optional[str] = None) -> str:
    """Decode a response body, sniffing the charset when none is declared."""
    known = [declared_encoding] if declared_encoding else []
    dammit = UnicodeDammit(content, known_definite_encodings=known, is_html=True)
    if dammit.unicode_markup is None:
        return content.decode("utf-8", errors="replace")
    return dammit.unicode_markup
