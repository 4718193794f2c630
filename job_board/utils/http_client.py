"""HTTP session factory with retry logic for the remote store and connectivity check."""

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

USER_AGENT = "job-board/0.1 (+offline-first sync client)"


def create_session(max_retries: int = 2, backoff_factor: float = 0.5) -> requests.Session:
    """Create a requests session that retries idempotent reads only.

    Writes are never retried here: a retried ``add`` would create a second
    remote document for the same record.
    """
    session = requests.Session()

    retry_strategy = Retry(
        total=max_retries,
        backoff_factor=backoff_factor,
        status_forcelist=[429, 500, 502, 503, 504],
        allowed_methods=["GET"],
    )

    adapter = HTTPAdapter(max_retries=retry_strategy)
    session.mount("http://", adapter)
    session.mount("https://", adapter)

    session.headers.update({
        "User-Agent": USER_AGENT,
        "Accept": "application/json",
    })

    return session
