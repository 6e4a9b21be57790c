"""Form extraction from a quiz page's token stream.

Quiz pages render each question as loose siblings: a paragraph holds some
text followed by radio inputs and their labels, with no fieldset or other
container tying the options together. The extractor therefore groups radio
options by the paragraph they appear in (the "block id") instead of by
document structure.
"""
import logging
from enum import Enum
from typing import Iterable, Optional, Union

from pydantic import BaseModel, Field

from config import SUCCESS_TITLE
from errors import ParseTruncated
from tokenizer import Token, TokenKind, tokenize

logger = logging.getLogger(__name__)


class FieldKind(str, Enum):
    TEXT = "text"
    RADIO = "radio"
    SELECT = "select"


class FieldGroup(BaseModel):
    """One answerable unit. ``name`` is the submission key shared by every option."""
    kind: FieldKind
    name: str
    values: list[str] = Field(default_factory=list)


class PageForm(BaseModel):
    groups: list[FieldGroup] = Field(default_factory=list)
    passed: bool = False  # Success title seen
    truncated: bool = False  # Markup ended before the form did


class _FormScanner:
    def __init__(self, success_title: str):
        self.success_title = success_title
        self.groups: list[FieldGroup] = []
        self.passed = False
        self.truncated = False
        self.in_form = False
        self.form_closed = False
        self.finished = False
        self.block = 0
        self.radios: dict[int, FieldGroup] = {}
        self.in_select = False
        self.select: Optional[FieldGroup] = None
        self.title: Optional[list[str]] = None

    def feed(self, token: Token) -> bool:
        """Consume one token. Returns True when scanning should stop."""
        if token.kind == TokenKind.TEXT:
            if self.title is not None:
                self.title.append(token.text)
            return False

        if self.title is not None and (token.kind == TokenKind.START or token.tag == "title"):
            # An unterminated title ends at the next tag.
            if self._close_title():
                return True

        if token.kind == TokenKind.END:
            self._end_tag(token.tag)
            return False

        tag = token.tag
        if tag == "title":
            self.title = []
            return False
        if tag == "form":
            self.in_form = True
            return False
        if not self.in_form:
            return False

        if tag == "button":
            self.finished = True
            return True
        if tag == "p":
            self.block += 1
        elif tag == "select":
            self._open_select(token)
        elif tag == "option":
            if self.in_select and self.select is not None:
                self.select.values.append(token.attr("value"))
        elif tag == "input":
            self._input(token)
        return False

    def finish(self) -> None:
        if self.title is not None:
            self._close_title()
        if self.in_form and not (self.finished or self.form_closed):
            self.truncated = True

    def result(self) -> PageForm:
        if self.passed:
            return PageForm(passed=True)
        return PageForm(groups=self.groups, truncated=self.truncated)

    def _close_title(self) -> bool:
        text = "".join(self.title).strip()
        self.title = None
        if text == self.success_title:
            logger.info("Success title found: %s", text)
            self.passed = True
        return self.passed

    def _end_tag(self, tag: str) -> None:
        if tag == "select":
            self.in_select = False
            self.select = None
        elif tag == "form" and self.in_form:
            self.form_closed = True

    def _open_select(self, token: Token) -> None:
        self.in_select = True
        name = token.attr("name").strip()
        if not name:
            logger.warning("Dropping <select> without a name attribute")
            self.select = None
            return
        self.select = FieldGroup(kind=FieldKind.SELECT, name=name)
        self.groups.append(self.select)

    def _input(self, token: Token) -> None:
        input_type = token.attr("type").strip().lower()
        name = token.attr("name").strip()
        if input_type == "text":
            if not name:
                logger.warning("Dropping text input without a name attribute")
                return
            self.groups.append(FieldGroup(
                kind=FieldKind.TEXT,
                name=name,
                values=[token.attr("value")],
            ))
        elif input_type == "radio":
            group = self.radios.get(self.block)
            if group is None:
                # Later radios in the block reuse this name, so a nameless
                # first radio leaves nothing to key the group by.
                if not name:
                    logger.warning("Dropping radio input without a name attribute")
                    return
                group = FieldGroup(kind=FieldKind.RADIO, name=name)
                self.radios[self.block] = group
                self.groups.append(group)
            group.values.append(token.attr("value"))


def extract(tokens: Iterable[Token], success_title: str = SUCCESS_TITLE) -> PageForm:
    """Collect field groups from one page's tokens.

    Never raises on bad markup: a tokenizer failure keeps whatever groups were
    found before it and marks the result truncated.
    """
    scanner = _FormScanner(success_title)
    try:
        for token in tokens:
            if scanner.feed(token):
                break
        else:
            scanner.finish()
    except ParseTruncated as e:
        logger.warning("Markup truncated after %d groups: %s", len(scanner.groups), e)
        scanner.truncated = True
    return scanner.result()


def extract_html(markup: Union[str, Iterable[str]], success_title: str = SUCCESS_TITLE) -> PageForm:
    return extract(tokenize(markup), success_title)
