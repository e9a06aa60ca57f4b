"""
Shared HTTP plumbing for storefront adapters.

Every call goes through HttpPlatformAdapter.request(), which applies the
configured timeout and turns httpx failures into SyncTransient /
SyncPermanent so the reconciler can decide whether to retry.
"""

from __future__ import annotations

import logging

import httpx

from stockledger.conf import stockledger_settings
from stockledger.exceptions import SyncPermanent, SyncTransient

logger = logging.getLogger(__name__)


def classify_response(platform: str, response: httpx.Response) -> None:
    """
    Raise the matching SyncError for a non-2xx response.

    5xx and 429 are transient; 401/403 (auth), 404 and any other 4xx are
    permanent.
    """
    if response.is_success:
        return

    status = response.status_code
    context = {
        'platform': platform,
        'status': status,
        'url': str(response.request.url) if response.request else None,
    }

    if status == 429:
        raise SyncTransient('RATE_LIMITED', **context)
    if status >= 500:
        raise SyncTransient('SERVER_ERROR', **context)
    if status in (401, 403):
        raise SyncPermanent('AUTH', **context)
    if status == 404:
        raise SyncPermanent('NOT_FOUND', **context)
    raise SyncPermanent('BAD_REQUEST', body=response.text[:200], **context)


class HttpPlatformAdapter:
    """
    Base for adapters talking to a storefront REST API.

    Subclasses set ``name`` and implement set_stock() (and optionally
    find_product()) on top of request().

    Args:
        name: Registry name, defaults to the class attribute
        store_url: Storefront base URL
        timeout: Seconds per request, defaults to SYNC_TIMEOUT_SECONDS
        transport: httpx transport override (tests use httpx.MockTransport)
    """

    name = 'http'

    def __init__(self, store_url: str, name: str | None = None,
                 timeout: float | None = None,
                 transport: httpx.BaseTransport | None = None):
        if not store_url:
            raise SyncPermanent('MISCONFIGURED', platform=name or self.name, missing='store_url')
        if name:
            self.name = name
        self.store_url = store_url.rstrip('/')
        self.timeout = timeout if timeout is not None else stockledger_settings.SYNC_TIMEOUT_SECONDS
        self._client = httpx.Client(
            base_url=self.store_url,
            timeout=self.timeout,
            auth=self.get_auth(),
            headers=self.get_headers(),
            transport=transport,
        )

    def get_auth(self) -> httpx.Auth | None:
        return None

    def get_headers(self) -> dict[str, str]:
        return {'Accept': 'application/json'}

    def request(self, method: str, url: str, **kwargs) -> httpx.Response:
        """
        Perform one HTTP call.

        Raises:
            SyncTransient: timeout, connection failure, 5xx, 429
            SyncPermanent: 401/403/404 and other 4xx
        """
        try:
            response = self._client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            raise SyncTransient('TIMEOUT', platform=self.name, url=url, error=str(e)) from e
        except httpx.TransportError as e:
            raise SyncTransient('NETWORK', platform=self.name, url=url, error=str(e)) from e

        logger.debug("%s %s %s -> %s", self.name, method, url, response.status_code)
        classify_response(self.name, response)
        return response

    def get_json(self, url: str, **kwargs):
        response = self.request('GET', url, **kwargs)
        try:
            return response.json()
        except ValueError as e:
            raise SyncPermanent('BAD_REQUEST', platform=self.name, url=url, error='invalid JSON') from e

    def close(self) -> None:
        self._client.close()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.name} {self.store_url}>"
