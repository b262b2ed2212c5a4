"""
Default fetch provider for string data sources.

``fetch(url)`` submits a ``requests.get`` to a shared background pool and
returns a ``concurrent.futures.Future`` that settles with the
``requests.Response``. Non-2xx responses settle the future with
``requests.HTTPError``. Components can swap the provider per bag with the
``fetch`` property (any callable taking a URL).
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Optional

import requests

import config

logger = logging.getLogger("chartbind")

_executor: Optional[ThreadPoolExecutor] = None
_executor_lock = threading.Lock()


def get_executor() -> ThreadPoolExecutor:
    """Return the shared fetch pool, creating it on first use."""
    global _executor
    with _executor_lock:
        if _executor is None:
            _executor = ThreadPoolExecutor(
                max_workers=config.FETCH_MAX_WORKERS,
                thread_name_prefix="chartbind-fetch",
            )
        return _executor


def shutdown_executor(wait: bool = True) -> None:
    """Shut the shared pool down; the next fetch creates a fresh one."""
    global _executor
    with _executor_lock:
        if _executor is not None:
            _executor.shutdown(wait=wait)
            _executor = None


def fetch_url(url: str, timeout: Optional[float] = None) -> requests.Response:
    """Blocking GET of *url*.

    Raises:
        requests.HTTPError: If the server answers with an error status.
        requests.RequestException: On connection errors and timeouts.
    """
    logger.debug(f"[Fetch] GET {url}")
    resp = requests.get(url, timeout=timeout or config.FETCH_TIMEOUT)
    resp.raise_for_status()
    return resp


def fetch(url: str) -> Future:
    """Start fetching *url* in the background."""
    return get_executor().submit(fetch_url, url, config.FETCH_TIMEOUT)
