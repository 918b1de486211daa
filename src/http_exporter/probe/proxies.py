from __future__ import annotations

import ipaddress
import logging
import urllib.request

import httpx

logger = logging.getLogger(__name__)


def proxy_for(url: httpx.URL) -> str | None:
    """Return the environment proxy for ``url``, if one applies.

    A proxy value without a scheme is taken as ``http://``.
    """
    if _is_loopback(url.host):
        return None
    proxy = urllib.request.getproxies().get(url.scheme)
    if not proxy or urllib.request.proxy_bypass(url.host):
        return None
    if "://" not in proxy:
        proxy = f"http://{proxy}"
    if not proxy.startswith(("http://", "https://")):
        logger.warning("Ignoring unsupported proxy %s for %s", proxy, url)
        return None
    return proxy


def _is_loopback(host: str) -> bool:
    if host == "localhost":
        return True
    try:
        return ipaddress.ip_address(host).is_loopback
    except ValueError:
        return False
