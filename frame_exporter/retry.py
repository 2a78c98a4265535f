import math
import time
import random
import logging
from typing import Callable, Dict, Optional

import requests

logger = logging.getLogger(__name__)

RATE_LIMIT_STATUS = 429

# Base wait and growth factor give roughly 2s, 5s, 12s before each retry
BACKOFF_BASE_SECONDS = 2
BACKOFF_FACTOR = 2.5


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Seconds from a numeric Retry-After header, None for missing or HTTP-date values"""
    if value is None:
        return None
    try:
        seconds = float(value.strip())
    except (ValueError, AttributeError):
        return None
    # nan and inf parse as floats but are not waits
    if not math.isfinite(seconds) or seconds < 0:
        return None
    return seconds


def backoff_delay(attempt: int, retry_after: Optional[float] = None, jitter: float = 0.0) -> float:
    """Seconds to wait before retry number ``attempt + 1``.

    A server-supplied Retry-After always wins. Otherwise the wait grows
    exponentially from two seconds, plus ``jitter`` (0 to 1 second) so that
    concurrent callers do not retry in lockstep.
    """
    if retry_after is not None:
        return retry_after
    return int(BACKOFF_BASE_SECONDS * BACKOFF_FACTOR ** attempt) + jitter


def fetch_with_retry(session: requests.Session, url: str, params: Optional[Dict] = None,
                     max_retries: int = 3, timeout: int = 30,
                     sleep: Callable[[float], None] = time.sleep,
                     jitter: Callable[[], float] = random.random) -> requests.Response:
    """GET ``url``, retrying 429 responses up to ``max_retries`` times.

    Any other status is returned immediately. When the retries run out the
    last 429 response is returned, so callers must check the status.
    """
    max_retries = max(max_retries, 0)
    for attempt in range(max_retries + 1):
        response = session.get(url, params=params, timeout=timeout)

        if response.status_code != RATE_LIMIT_STATUS:
            return response

        if attempt >= max_retries:
            logger.error("Rate limit exceeded after all retries")
            return response

        retry_after = parse_retry_after(response.headers.get('Retry-After'))
        wait = backoff_delay(attempt, retry_after, jitter())
        logger.warning(f"Rate limited (429). Waiting {round(wait * 1000)}ms "
                       f"(attempt {attempt + 1}/{max_retries})")
        sleep(wait)
