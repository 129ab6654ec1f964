"""
Readiness polling for started containers.

Polls with exponential backoff until a condition holds or the timeout
elapses. Timeouts surface as the builtin ``TimeoutError``; callers wrap it
with node context.
"""

import logging
import time
from typing import Callable, Optional

import httpx

logger = logging.getLogger(__name__)


def poll_until(
    check: Callable[[], Optional[str]],
    timeout: float,
    description: str,
    interval: float = 0.25,
    max_interval: float = 2.0,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> None:
    """
    Call ``check`` until it returns None.

    Args:
        check: Returns None when the condition holds, otherwise the reason it does not
        timeout: Maximum time to wait in seconds
        description: What is being waited for, used in logs and errors
        interval: Initial delay between attempts
        max_interval: Delay cap for the exponential backoff

    Raises:
        TimeoutError: If the condition did not hold within ``timeout``
    """
    deadline = clock() + timeout
    delay = interval
    attempt = 0

    while True:
        attempt += 1
        reason = check()
        if reason is None:
            logger.debug(f"{description} satisfied after {attempt} attempt(s)")
            return

        remaining = deadline - clock()
        if remaining <= 0:
            raise TimeoutError(
                f"Timed out after {timeout}s waiting for {description}: {reason}"
            )

        sleep(min(delay, remaining))
        delay = min(delay * 2, max_interval)


def wait_for_http_ready(
    url: str,
    timeout: float,
    client: Optional[httpx.Client] = None,
    **poll_kwargs,
) -> None:
    """
    Wait until ``GET url`` answers with a 2xx status.

    Raises:
        TimeoutError: If the endpoint did not become ready within ``timeout``
    """
    owns_client = client is None
    client = client or httpx.Client(timeout=5.0)

    def check() -> Optional[str]:
        try:
            response = client.get(url)
        except httpx.HTTPError as e:
            return f"{type(e).__name__}: {e}"
        if response.is_success:
            return None
        return f"HTTP {response.status_code}"

    try:
        poll_until(check, timeout, f"readiness of {url}", **poll_kwargs)
    finally:
        if owns_client:
            client.close()
