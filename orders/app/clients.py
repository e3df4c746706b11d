"""
HTTP clients for the services the order service depends on.

Calls are synchronous. Each carries a (connect, read) timeout and is retried
at most UPSTREAM_RETRIES times with exponential backoff, and only for
transport failures; an HTTP status from the peer is always final.
"""
import logging
import os
from typing import Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .errors import ProductNotFound, UpstreamError, UserNotFound

log = logging.getLogger(__name__)

USER_SERVICE_URL = os.getenv("USER_SERVICE_URL", "http://user-service:3001")
PRODUCT_SERVICE_URL = os.getenv("PRODUCT_SERVICE_URL", "http://product-service:8080")
CONNECT_TIMEOUT = float(os.getenv("UPSTREAM_CONNECT_TIMEOUT", "2"))
READ_TIMEOUT = float(os.getenv("UPSTREAM_READ_TIMEOUT", "5"))
RETRIES = int(os.getenv("UPSTREAM_RETRIES", "1"))
BACKOFF = float(os.getenv("UPSTREAM_BACKOFF", "0.2"))


def build_session(retries: int = RETRIES, backoff: float = BACKOFF) -> requests.Session:
    retry = Retry(
        total=retries,
        connect=retries,
        read=retries,
        status=0,
        other=0,
        backoff_factor=backoff,
        allowed_methods=frozenset(["GET"]),
        raise_on_status=False,
    )
    s = requests.Session()
    adapter = HTTPAdapter(max_retries=retry)
    s.mount("http://", adapter)
    s.mount("https://", adapter)
    return s


class ServiceClient:
    service = "upstream"

    def __init__(self, base_url: str, session: Optional[requests.Session] = None,
                 timeout=(CONNECT_TIMEOUT, READ_TIMEOUT)):
        self.base_url = base_url.rstrip("/")
        self.session = session or build_session()
        self.timeout = timeout

    def _get(self, path: str) -> Optional[dict]:
        """GET a JSON document; None on 404, UpstreamError on anything else."""
        url = f"{self.base_url}{path}"
        try:
            resp = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            log.warning("%s service unreachable at %s: %s", self.service, url, e)
            raise UpstreamError(self.service, str(e)) from e
        if resp.status_code == 404:
            return None
        if resp.status_code != 200:
            raise UpstreamError(self.service, f"HTTP {resp.status_code} from {url}")
        try:
            return resp.json()
        except ValueError as e:
            raise UpstreamError(self.service, f"invalid JSON from {url}") from e

    def close(self):
        self.session.close()


class UserDirectory(ServiceClient):
    """Looks up users by id: {id, email, name}."""
    service = "user"

    def __init__(self, base_url: str = USER_SERVICE_URL, **kwargs):
        super().__init__(base_url, **kwargs)

    def get_user(self, user_id: int) -> dict:
        body = self._get(f"/api/users/{user_id}")
        if body is None:
            raise UserNotFound(user_id)
        try:
            return body["user"]
        except (KeyError, TypeError) as e:
            raise UpstreamError(self.service, "malformed user payload") from e


class ProductCatalog(ServiceClient):
    """Looks up products by id: {id, name, price, stock}."""
    service = "product"

    def __init__(self, base_url: str = PRODUCT_SERVICE_URL, **kwargs):
        super().__init__(base_url, **kwargs)

    def get_product(self, product_id: int) -> dict:
        body = self._get(f"/api/products/{product_id}")
        if body is None:
            raise ProductNotFound(product_id)
        try:
            return body["product"]
        except (KeyError, TypeError) as e:
            raise UpstreamError(self.service, "malformed product payload") from e
