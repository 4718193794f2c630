"""Connectivity gate: a point-in-time "is the remote store worth trying" check.

The gate is injected into each repository. It is evaluated right before every
remote attempt and never cached, and it has no retries or backoff: it only
skips remote calls that cannot succeed. Correctness never depends on it.
"""

import logging
from typing import Optional

import requests

from job_board.utils.http_client import create_session

logger = logging.getLogger("job_board.sync.connectivity")


class ConnectivityGate:
    def is_reachable(self) -> bool:
        raise NotImplementedError


class StaticGate(ConnectivityGate):
    """Gate with a fixed answer that can be flipped at runtime."""

    def __init__(self, online: bool = True):
        self.online = online
        self.checks = 0

    def is_reachable(self) -> bool:
        self.checks += 1
        return self.online


class HttpCheckGate(ConnectivityGate):
    """Open only when a validation endpoint answers with HTTP 204.

    A 204 from a generate_204 style endpoint proves there is a validated path
    to the internet, not just a link (captive portals answer with 200 or a
    redirect instead).
    """

    def __init__(
        self,
        check_url: str = "https://connectivitycheck.gstatic.com/generate_204",
        timeout: float = 3.0,
        session: Optional[requests.Session] = None,
    ):
        self.check_url = check_url
        self.timeout = timeout
        self.session = session or create_session(max_retries=0)

    def is_reachable(self) -> bool:
        try:
            response = self.session.get(self.check_url, timeout=self.timeout, allow_redirects=False)
        except requests.RequestException as e:
            logger.debug("Connectivity check failed: %s", e)
            return False
        reachable = response.status_code == 204
        if not reachable:
            logger.debug("Connectivity check answered HTTP %d", response.status_code)
        return reachable
