"""
Network utilities for Mingle Studio.

Provides:
- HTTP session factory with a transport-level retry strategy
- NetworkFetcher: image download with a direct -> CORS-relay fallback chain,
  normalizing every payload into a data-URI
"""

import http.cookiejar
from typing import Optional, Tuple
from urllib.parse import quote

import requests
from urllib3.util.retry import Retry
from requests.adapters import HTTPAdapter

from .errors import APIError, TransientBackendError, create_api_error
from .image_utils import to_data_uri
from .studio_logger import logger, RequestTimer

# Retry configuration (idempotent downloads only; 429 is never retried)
RETRY_TOTAL = 3
RETRY_STATUS_FORCELIST = [500, 502, 504]
RETRY_ALLOWED_METHODS = ["HEAD", "GET", "OPTIONS"]
RETRY_BACKOFF_FACTOR = 0.5

RETRY_STRATEGY = Retry(
    total=RETRY_TOTAL,
    status_forcelist=RETRY_STATUS_FORCELIST,
    allowed_methods=RETRY_ALLOWED_METHODS,
    backoff_factor=RETRY_BACKOFF_FACTOR,
    raise_on_status=False,
)


def get_session(retry: Optional[Retry] = RETRY_STRATEGY) -> requests.Session:
    """
    HTTP Session factory.

    Pass retry=None for sessions whose callers count attempts themselves
    (provider adapters and task polling).
    """
    session = requests.Session()
    if retry is not None:
        adapter = HTTPAdapter(max_retries=retry)
        session.mount("https://", adapter)
        session.mount("http://", adapter)
    return session


def strip_credentials(session: requests.Session) -> requests.Session:
    """
    Make a session anonymous: its cookie jar refuses every cookie and it
    ignores environment auth (netrc, proxy credentials).
    """
    session.cookies.clear()
    session.cookies.set_policy(http.cookiejar.DefaultCookiePolicy(allowed_domains=[]))
    session.trust_env = False
    session.auth = None
    return session


# ==========================================
# Network Fetcher
# ==========================================

DEFAULT_RELAY_URL = "https://api.allorigins.win/raw?url={url}"
DEFAULT_MIN_BYTES = 1000
DEFAULT_FETCH_TIMEOUT = 60

# Statuses an origin uses when it refuses a cross-origin caller
BLOCKED_STATUS_CODES = (401, 403, 407, 451)


class NetworkFetcher:
    """
    Downloads images with an ordered fallback chain.

    1. Direct GET, credentials omitted.
    2. The same URL through a public CORS-relay, tried exactly once, when
       step 1 fails with a transport error, a blocked status, or a payload
       below the size sanity threshold.
    """

    def __init__(self, session: Optional[requests.Session] = None,
                 relay_url: str = DEFAULT_RELAY_URL,
                 min_bytes: int = DEFAULT_MIN_BYTES,
                 timeout: float = DEFAULT_FETCH_TIMEOUT):
        # Image URLs come from third parties; never send them cookies or auth
        self.session = strip_credentials(session or get_session())
        self.relay_url = relay_url
        self.min_bytes = min_bytes
        self.timeout = timeout

    def relay_url_for(self, url: str) -> str:
        return self.relay_url.format(url=quote(url, safe=""))

    def fetch(self, url: str, provider: str = "fetcher") -> str:
        """Fetch an image and return it as a data-URI."""
        content, content_type = self.fetch_bytes(url, provider)
        return to_data_uri(content, content_type)

    def fetch_bytes(self, url: str, provider: str = "fetcher") -> Tuple[bytes, str]:
        """
        Fetch an image's bytes and content type.

        Raises:
            APIError: the origin answered with a non-relayable failure
            TransientBackendError: both the direct and the relay path failed
        """
        reason = None
        try:
            with RequestTimer(f"Direct fetch {url}"):
                resp = self.session.get(
                    url,
                    headers={"Accept": "image/*"},
                    auth=None,
                    timeout=self.timeout,
                )
        except requests.RequestException as e:
            reason = f"{type(e).__name__}: {e}"
        else:
            if resp.status_code in BLOCKED_STATUS_CODES:
                reason = f"blocked with HTTP {resp.status_code}"
            elif not 200 <= resp.status_code < 300:
                raise create_api_error(provider, resp.status_code, resp.text[:200], url)
            elif len(resp.content) <= self.min_bytes:
                reason = f"undersized payload ({len(resp.content)} bytes)"
            else:
                logger.debug(f"✅ Direct fetch succeeded ({len(resp.content)} bytes)")
                return resp.content, resp.headers.get("Content-Type", "")

        logger.warning(f"⚠️ Direct fetch failed ({reason}), trying CORS relay")
        return self._fetch_via_relay(url, provider, reason)

    def _fetch_via_relay(self, url: str, provider: str, direct_reason: str) -> Tuple[bytes, str]:
        relay_url = self.relay_url_for(url)
        try:
            with RequestTimer(f"Relay fetch {url}"):
                resp = self.session.get(relay_url, timeout=self.timeout)
        except requests.RequestException as e:
            raise TransientBackendError(
                provider,
                message=f"Direct fetch failed ({direct_reason}); relay failed: {e}",
                url=url,
            ) from e

        if not 200 <= resp.status_code < 300:
            raise TransientBackendError(
                provider,
                message=f"Direct fetch failed ({direct_reason}); relay returned HTTP {resp.status_code}",
                status_code=resp.status_code,
                url=url,
            )

        if len(resp.content) <= self.min_bytes:
            raise TransientBackendError(
                provider,
                message=(f"Direct fetch failed ({direct_reason}); relay returned "
                         f"{len(resp.content)} bytes (minimum {self.min_bytes})"),
                url=url,
            )

        logger.info(f"✅ Relay fetch succeeded ({len(resp.content)} bytes)")
        return resp.content, resp.headers.get("Content-Type", "")


__all__ = [
    "APIError",
    "NetworkFetcher",
    "get_session",
    "BLOCKED_STATUS_CODES",
    "DEFAULT_RELAY_URL",
]
