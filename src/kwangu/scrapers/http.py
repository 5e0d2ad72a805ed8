import logging
import random
from typing import Dict, Optional

import httpx
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_fixed

from kwangu.config import settings
from kwangu.scrapers.errors import FetchError

logger = logging.getLogger(__name__)

USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/123.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 14_4) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.4 Safari/605.1.15",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:125.0) Gecko/20100101 Firefox/125.0",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36 Edg/124.0.2478.51",
]


def build_headers() -> Dict[str, str]:
    return {
        "User-Agent": random.choice(USER_AGENTS),
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.9",
    }


async def _get(client: httpx.AsyncClient, url: str, timeout: float) -> str:
    try:
        r = await client.get(url, headers=build_headers(), timeout=timeout)
    except httpx.TimeoutException as e:
        raise FetchError(url, f"timed out after {timeout}s") from e
    except httpx.HTTPError as e:
        raise FetchError(url, f"{e.__class__.__name__}: {e}") from e

    if not 200 <= r.status_code < 400:
        raise FetchError(url, f"HTTP {r.status_code}", status_code=r.status_code)
    logger.debug("GET %s -> %s", url, r.status_code)
    return r.text


async def fetch_html(
    url: str,
    client: Optional[httpx.AsyncClient] = None,
    timeout: Optional[float] = None,
    attempts: Optional[int] = None,
) -> str:
    """
    GET `url` with a random desktop User-Agent and return the body.
    Any 2xx-3xx is accepted; everything else raises FetchError.
    One attempt unless FETCH_ATTEMPTS says otherwise.
    """
    timeout = settings.FETCH_TIMEOUT if timeout is None else timeout
    attempts = settings.FETCH_ATTEMPTS if attempts is None else attempts

    owns_client = client is None
    if owns_client:
        client = httpx.AsyncClient(follow_redirects=True, timeout=timeout)
    try:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(attempts),
            wait=wait_fixed(1),
            retry=retry_if_exception_type(FetchError),
            reraise=True,
        ):
            with attempt:
                return await _get(client, url, timeout)
    finally:
        if owns_client:
            await client.aclose()
