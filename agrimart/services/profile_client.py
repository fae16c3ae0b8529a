# agrimart/services/profile_client.py
import requests

from agrimart.domain.errors import NotFound, UpstreamUnavailable
from agrimart.utils.retry import http_retry
from agrimart.utils.settings import PROFILE_SERVICE_URL
from agrimart.utils.logging import get_logger

logger = get_logger(__name__)


class ProfileClient:
    """Reads buyer profiles from the profile service for order snapshots."""

    def __init__(self, base_url: str | None = None, timeout: int = 2, session: requests.Session | None = None):
        self.base_url = (base_url or PROFILE_SERVICE_URL).rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def fetch_profile(self, buyer_id: int) -> dict:
        try:
            return self._get_profile(buyer_id)
        except requests.RequestException as e:
            logger.error(f"Profile service failed for buyer {buyer_id}: {e}")
            raise UpstreamUnavailable("profile service", str(e)) from e

    @http_retry()
    def _get_profile(self, buyer_id: int) -> dict:
        url = f"{self.base_url}/profiles/{buyer_id}"
        logger.info(f"ProfileClient GET {url}")

        resp = self.session.get(url, timeout=self.timeout)
        if resp.status_code == 404:
            raise NotFound("buyer", buyer_id)
        resp.raise_for_status()
        return resp.json()
