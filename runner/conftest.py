import asyncio
import re
from urllib.parse import parse_qsl

import httpx
import pytest

from client import RateLimitedClient
from limiter import RateLimiter

BASE_URL = "http://quiz.test"
SUCCESS = "Test successfully passed"


class FakeClock:
    """Monotonic clock that only moves when someone sleeps on it."""

    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.now += seconds
        await asyncio.sleep(0)


def question_page(n: int) -> str:
    return f"""<html><head><title>Question {n}</title></head><body>
<form method="post" action="/question/{n}">
  <p>Your name</p>
  <input type="text" name="q{n}" value="">
  <p>
    <input type="radio" name="a{n}" value="Paris"> Paris
    <input type="radio" name="a{n}" value="Longerword"> Longerword
  </p>
  <p>Pick one</p>
  <select name="s{n}">
    <option value="short">short</option>
    <option value="a bit longer">a bit longer</option>
  </select>
  <button type="submit">Next</button>
</form></body></html>"""


def success_page() -> str:
    return f"<html><head><title>{SUCCESS}</title></head><body>Done</body></html>"


class QuizServer:
    """In-memory quiz for httpx.MockTransport.

    Sessions get cookies s1, s2, ... in bootstrap order. After ``questions``
    pages the next page reports success, unless ``endless`` is set.
    """

    def __init__(self, questions: int = 2):
        self.questions = questions
        self.endless = False
        self.set_cookie = True
        self.finish_status = 200
        self.finish_redirect = False
        self.submit_status = 302
        self.submit_body = ""
        self.broken_paths: set[str] = set()
        self.requests: list[httpx.Request] = []
        self.submissions: list[tuple[int, dict]] = []
        self.sessions = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path in self.broken_paths:
            raise httpx.ConnectError("connection refused", request=request)
        if path == "/":
            self.sessions += 1
            headers = {}
            if self.set_cookie:
                headers["Set-Cookie"] = f"session=s{self.sessions}; Path=/; HttpOnly"
            return httpx.Response(200, text="<html><title>Quiz</title></html>", headers=headers)
        if path == "/passed":
            return httpx.Response(200, text=success_page())
        match = re.fullmatch(r"/question/(\d+)", path)
        if not match:
            return httpx.Response(404)
        n = int(match.group(1))
        if request.method == "POST":
            self.submissions.append((n, dict(parse_qsl(request.content.decode()))))
            if self.submit_status == 302:
                return httpx.Response(302, headers={"Location": f"/question/{n + 1}"})
            return httpx.Response(self.submit_status, text=self.submit_body)
        if n > self.questions and not self.endless:
            if self.finish_redirect:
                return httpx.Response(302, headers={"Location": "/passed"})
            if self.finish_status != 200:
                return httpx.Response(self.finish_status)
            return httpx.Response(200, text=success_page())
        return httpx.Response(200, text=question_page(n))

    def cookies_sent(self) -> list:
        return [r.headers.get("cookie") for r in self.requests]


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def quiz_server():
    return QuizServer()


@pytest.fixture
def make_client():
    def factory(handler, rate: float = 1000, burst: int = 1000) -> RateLimitedClient:
        return RateLimitedClient(
            RateLimiter(rate, burst),
            BASE_URL,
            transport=httpx.MockTransport(handler),
        )
    return factory
