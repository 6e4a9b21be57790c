"""HTTP client whose every request waits on the shared rate limiter."""
import logging
from http.cookiejar import CookieJar, DefaultCookiePolicy
from typing import Mapping, Optional

import httpx

from errors import TransportError
from limiter import RateLimiter

logger = logging.getLogger(__name__)


class RateLimitedClient:
    """One connection pool shared by every session.

    Sessions send their own Cookie header, so the pool keeps no cookie jar of
    its own and does not follow redirects (httpx drops an explicit Cookie
    header when it does).
    """

    def __init__(
        self,
        limiter: RateLimiter,
        base_url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.limiter = limiter
        self.base_url = base_url.rstrip("/")
        self._http = httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=False,
            cookies=CookieJar(policy=DefaultCookiePolicy(allowed_domains=[])),
            transport=transport,
        )

    async def __aenter__(self) -> "RateLimitedClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    def url(self, path: str = "") -> str:
        """Absolute URL for a path under the quiz base. Absolute URLs pass through."""
        if path.startswith(("http://", "https://")):
            return path
        if not path:
            return self.base_url
        return f"{self.base_url}/{path.lstrip('/')}"

    async def send(
        self,
        method: str,
        path: str = "",
        headers: Optional[Mapping[str, str]] = None,
        data: Optional[Mapping[str, str]] = None,
    ) -> httpx.Response:
        """Acquire a permit, then issue one request. Never retries.

        RateLimitCancelled from the limiter propagates before anything is
        sent; request failures (network, decoding, bad URL) surface as
        TransportError.
        """
        await self.limiter.acquire()
        url = self.url(path)
        try:
            response = await self._http.request(
                method, url, headers=headers, data=data
            )
        except (httpx.RequestError, httpx.InvalidURL) as e:
            logger.warning("%s %s failed: %s", method, url, e)
            raise TransportError(f"{method} {url}: {e}") from e
        logger.debug("%s %s -> %d", method, url, response.status_code)
        return response
