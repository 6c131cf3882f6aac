"""
HTTP client used to fetch manifests and segments from origin servers.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from hlsproxy.errors import FetchError
from hlsproxy.utils.user_agent import get_random_desktop_ua

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"


@dataclass
class OriginResponse:
    url: str
    status_code: int
    content: bytes
    content_type: Optional[str] = None


class OriginClient:
    """requests-based client with a bounded timeout and optional retries.

    Every failure (timeout, connection error, non-2xx status) is raised as
    FetchError so callers never have to deal with requests exceptions.
    """

    def __init__(self, timeout: float = 15, max_retries: int = 0, user_agent: Optional[str] = None):
        self.timeout = timeout
        self.max_retries = max_retries
        self.user_agent = user_agent
        self.session = self._create_session()

    def _create_session(self) -> requests.Session:
        """Create a requests session with retry strategy"""
        session = requests.Session()

        retry_strategy = Retry(
            total=self.max_retries,
            status_forcelist=[502, 503, 504],
            allowed_methods=["HEAD", "GET", "OPTIONS"],
            backoff_factor=0.5,
            raise_on_status=False,
        )

        adapter = HTTPAdapter(max_retries=retry_strategy)
        session.mount("http://", adapter)
        session.mount("https://", adapter)

        return session

    def _prepare_headers(self, headers: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        current_headers = {'User-Agent': self.user_agent or get_random_desktop_ua()}
        if headers:
            current_headers.update(headers)
        return current_headers

    def get(self, url: str, headers: Optional[Dict[str, str]] = None) -> OriginResponse:
        """GET url and return its full body.

        Raises:
            FetchError: on timeout, connection failure or a non-2xx status.
        """
        logger.debug(f"Fetching {url}")
        try:
            response = self.session.get(
                url,
                headers=self._prepare_headers(headers),
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout:
            logger.error(f"⏰ Origin timeout ({self.timeout}s) for {url}")
            raise FetchError(f"timeout of {self.timeout}s exceeded") from None
        except requests.exceptions.RequestException as e:
            logger.error(f"🔌 Origin request failed for {url}: {e}")
            raise FetchError(str(e)) from e

        if not response.ok:
            logger.warning(f"⚠️ Origin returned HTTP {response.status_code} for {url}")
            raise FetchError(
                f"Request failed with status code {response.status_code}",
                upstream_status=response.status_code,
            )

        return OriginResponse(
            url=url,
            status_code=response.status_code,
            content=response.content,
            content_type=response.headers.get('Content-Type'),
        )

    def post_json(self, url: str, payload: Dict, timeout: Optional[float] = None) -> Dict:
        """POST a JSON payload and return the decoded JSON body.

        Raises:
            FetchError: on network failure, non-2xx status or a non-JSON body.
        """
        req_timeout = timeout or self.timeout
        try:
            response = self.session.post(
                url,
                json=payload,
                headers=self._prepare_headers({'Accept': 'application/json'}),
                timeout=req_timeout,
            )
        except requests.exceptions.Timeout:
            logger.error(f"⏰ Timeout ({req_timeout}s) posting to {url}")
            raise FetchError(f"timeout of {req_timeout}s exceeded") from None
        except requests.exceptions.RequestException as e:
            logger.error(f"🔌 POST to {url} failed: {e}")
            raise FetchError(str(e)) from e

        if not response.ok:
            raise FetchError(
                f"Request failed with status code {response.status_code}",
                upstream_status=response.status_code,
            )

        try:
            return response.json()
        except ValueError:
            logger.error(f"❌ Non-JSON response from {url}: {response.text[:200]}")
            raise FetchError(f"Invalid JSON response from {url}") from None
