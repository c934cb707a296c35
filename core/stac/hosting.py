"""
Remote host availability.

The emitter only depends on the ``HostProbe`` interface; ``HttpHostProbe``
is the network implementation. Probing is best-effort: timeouts and
connection errors mean "not hosted", never a failed run.
"""

import logging
from typing import Protocol

import requests

logger = logging.getLogger(__name__)


class HostProbe(Protocol):
    """Answers whether a remote URL currently serves a file."""

    def exists(self, url: str) -> bool:
        ...


class HttpHostProbe:
    """HEAD-request probe with a short timeout."""

    def __init__(self, timeout: float = 5.0):
        self.timeout = timeout

    def exists(self, url: str) -> bool:
        try:
            response = requests.head(url, allow_redirects=True, timeout=self.timeout)
        except requests.RequestException as e:
            logger.debug(f"Probe failed for {url}: {e}")
            return False
        return 200 <= response.status_code < 300


def hosted_url(base_url: str, filename: str) -> str:
    """Join a host prefix and a filename with exactly one slash."""
    return f"{base_url.rstrip('/')}/{filename}"
