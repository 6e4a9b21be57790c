"""A single quiz session.

The worker bootstraps a session cookie, then loops fetch -> extract ->
submit one page at a time until a page reports success, the server runs out
of pages, or a request fails. Each worker owns its state; only the client
(and its rate limiter) is shared.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

import httpx

from answers import select_answers
from client import RateLimitedClient
from config import MAX_PAGES, SUCCESS_TITLE, TEXT_PLACEHOLDER
from errors import NoSessionCookie, RateLimitCancelled, TransportError
from extractor import FieldGroup, extract_html
from metrics import SessionMetrics
from tokenizer import decode_body

logger = logging.getLogger(__name__)

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"
MAX_REDIRECTS = 5


class SessionStatus(str, Enum):
    INIT = "init"
    FETCHING = "fetching"
    EXTRACTING = "extracting"
    SUBMITTING = "submitting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class SessionState:
    cookie: Optional[str] = None
    page: int = 1
    groups: list[FieldGroup] = field(default_factory=list)
    status: SessionStatus = SessionStatus.INIT
    error: Optional[str] = None

    @property
    def terminated(self) -> bool:
        return self.status in (SessionStatus.SUCCEEDED, SessionStatus.FAILED)


@dataclass
class WorkerOutcome:
    worker_id: int
    status: SessionStatus
    pages: int
    error: Optional[str] = None


def parse_session_cookie(header: Optional[str]) -> str:
    """Return the name=value pair of a Set-Cookie header, attributes dropped."""
    pair = (header or "").split(";", 1)[0].strip()
    if not pair:
        raise NoSessionCookie("bootstrap response has no Set-Cookie header")
    return pair


class _WorkerLog(logging.LoggerAdapter):
    def process(self, msg, kwargs):
        return f"[worker {self.extra['worker_id']}] {msg}", kwargs


class SessionWorker:
    def __init__(
        self,
        worker_id: int,
        client: RateLimitedClient,
        completion: Optional[asyncio.Queue] = None,
        success_title: str = SUCCESS_TITLE,
        placeholder: str = TEXT_PLACEHOLDER,
        max_pages: int = MAX_PAGES,
    ):
        self.worker_id = worker_id
        self.client = client
        self.completion = completion
        self.success_title = success_title
        self.placeholder = placeholder
        self.max_pages = max_pages
        self.state = SessionState()
        self.metrics = SessionMetrics()
        self.log = _WorkerLog(logger, {"worker_id": worker_id})
        self._body: Optional[str] = None
        self._reported = False
        self._quiz_host = httpx.URL(client.base_url).host

    async def run(self) -> WorkerOutcome:
        """Drive the session to a terminal state. A no-op once terminated."""
        try:
            while not self.state.terminated:
                await self._advance()
        except RateLimitCancelled:
            self.log.info("Stopped: pool is shutting down")
            self._fail("cancelled")
        except (TransportError, NoSessionCookie) as e:
            self.log.error("Failed on page %d: %s", self.state.page, e)
            self.metrics.end_page(self.state.page, error=str(e))
            self._fail(str(e))
        return self.outcome()

    def outcome(self) -> WorkerOutcome:
        return WorkerOutcome(
            worker_id=self.worker_id,
            status=self.state.status,
            pages=len(self.metrics.pages),
            error=self.state.error,
        )

    async def _advance(self) -> None:
        status = self.state.status
        if status == SessionStatus.INIT:
            await self._bootstrap()
        elif status == SessionStatus.FETCHING:
            await self._fetch()
        elif status == SessionStatus.EXTRACTING:
            self._extract()
        elif status == SessionStatus.SUBMITTING:
            await self._submit()

    async def _bootstrap(self) -> None:
        response = await self.client.send("GET")
        cookies = response.headers.get_list("set-cookie")
        self.state.cookie = parse_session_cookie(cookies[0] if cookies else None)
        self.log.info("Session cookie %s", self.state.cookie)
        self.state.page = 1
        self.state.status = SessionStatus.FETCHING

    async def _fetch(self) -> None:
        n = self.state.page
        if n > self.max_pages:
            self._fail(f"exhausted: no success after {self.max_pages} pages")
            return
        self.metrics.start_page(n)
        response = await self._get(f"question/{n}")
        if response.status_code == 404:
            self.metrics.end_page(n, status_code=404, error="not found")
            self._fail(f"exhausted: page {n} not found")
            return
        self._body = decode_body(response.content, response.charset_encoding)
        self.state.status = SessionStatus.EXTRACTING

    def _extract(self) -> None:
        n = self.state.page
        form = extract_html(self._body or "", self.success_title)
        self._body = None
        if form.passed:
            self.metrics.end_page(n)
            self._succeed()
            return
        if form.truncated:
            self.log.warning("Page %d markup ended early, submitting what was found", n)
        self.state.groups = form.groups
        self.log.info("Page %d: %d fields", n, len(form.groups))
        self.state.status = SessionStatus.SUBMITTING

    async def _submit(self) -> None:
        n = self.state.page
        payload = select_answers(self.state.groups, self.placeholder)
        for name, value in payload.items():
            self.log.info("input name=%s set %r", name, value)
        response = await self.client.send(
            "POST",
            f"question/{n}",
            headers={"Content-Type": FORM_CONTENT_TYPE, "Cookie": self.state.cookie},
            data=payload,
        )
        self.metrics.end_page(n, fields=len(self.state.groups), status_code=response.status_code)
        self.state.groups = []
        if response.is_success and self._reports_success(response):
            self._succeed()
            return
        if response.is_success or response.is_redirect:
            self.log.info("Question %d submitted", n)
        else:
            # The next page's markup decides, not the status code.
            self.log.warning("Page %d submit returned %d", n, response.status_code)
        self.state.page = n + 1
        self.state.status = SessionStatus.FETCHING

    async def _get(self, path: str) -> httpx.Response:
        """GET with the session cookie, following redirects by hand.

        The cookie only follows redirects that stay on the quiz host.
        """
        headers = {"Cookie": self.state.cookie}
        response = await self.client.send("GET", path, headers=headers)
        for _ in range(MAX_REDIRECTS):
            location = response.headers.get("location")
            if not response.is_redirect or not location:
                break
            try:
                target = response.url.join(location)
            except httpx.InvalidURL as e:
                raise TransportError(f"bad redirect {location!r}: {e}") from e
            self.log.debug("Redirected to %s", target)
            same_host = target.host == self._quiz_host
            response = await self.client.send(
                "GET", str(target), headers=headers if same_host else None
            )
        return response

    def _reports_success(self, response: httpx.Response) -> bool:
        body = decode_body(response.content, response.charset_encoding)
        return extract_html(body, self.success_title).passed

    def _succeed(self) -> None:
        self.state.status = SessionStatus.SUCCEEDED
        if self._reported:
            return
        self._reported = True
        self.log.info("Quiz passed on page %d", self.state.page)
        if self.completion is not None:
            self.completion.put_nowait(self.worker_id)

    def _fail(self, reason: str) -> None:
        self.state.status = SessionStatus.FAILED
        self.state.error = reason
