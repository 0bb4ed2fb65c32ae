"""Public asset URL resolution."""

import ipaddress
import logging
from typing import Optional
from urllib.parse import urljoin, urlparse

from ..config import config
from .base import AssetUrlResolver

logger = logging.getLogger(__name__)

_LOCAL_HOSTS = {"localhost", "localhost.localdomain", "host.docker.internal"}


def _is_public_host(host: str) -> bool:
    host = host.lower().rstrip(".")
    if not host or host in _LOCAL_HOSTS or host.endswith(".localhost") or host.endswith(".internal"):
        return False
    try:
        address = ipaddress.ip_address(host)
    except ValueError:
        # Single-label names only resolve inside a private network
        return "." in host
    return address.is_global


class PublicUrlResolver(AssetUrlResolver):
    """Accepts absolute http(s) URLs on public hosts.

    Root-relative paths such as ``/objects/logo.png`` are joined onto
    ``public_base_url`` when one is configured; otherwise they are rejected,
    as are other schemes, loopback and private addresses.
    """

    def __init__(self, public_base_url: Optional[str] = None) -> None:
        base = config.public_asset_base_url if public_base_url is None else public_base_url
        if base and not self._is_absolute_public(base):
            raise ValueError(f"PUBLIC_ASSET_BASE_URL is not a public http(s) URL: {base}")
        self._base_url = base.rstrip("/") + "/" if base else ""

    @staticmethod
    def _is_absolute_public(url: str) -> bool:
        parsed = urlparse(url)
        return parsed.scheme in ("http", "https") and _is_public_host(parsed.hostname or "")

    def resolve(self, raw_url: Optional[str]) -> Optional[str]:
        if raw_url is None or not raw_url.strip():
            return None
        url = raw_url.strip()

        if url.startswith("/") and not url.startswith("//"):
            if not self._base_url:
                logger.debug(f"No public base URL for relative asset {url}")
                return None
            url = urljoin(self._base_url, url.lstrip("/"))

        if not self._is_absolute_public(url):
            logger.debug(f"Asset URL is not public: {raw_url}")
            return None
        return url
