"""Shared async HTTP client used for the outbound email API and form relay."""

from typing import Any

import httpx

USER_AGENT = "form-verification-relay/1.0"


class HttpClient:
    """Thin async wrapper around httpx.AsyncClient with a configurable timeout.

    Redirects are not followed: a form endpoint answering 3xx counts as a
    non-200 response, same as any other status.
    """

    def __init__(self, timeout: float = 10.0) -> None:
        self._client = httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=False,
            headers={"User-Agent": USER_AGENT},
        )

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self._client.post(url, **kwargs)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "HttpClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()
