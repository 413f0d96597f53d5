"""WSGI proxy middleware configuration helper."""

from __future__ import annotations

from flask import Flask
from werkzeug.middleware.proxy_fix import ProxyFix


def init_app(app: Flask) -> None:
    """Apply :class:`ProxyFix` when ``USE_PROXYFIX`` is enabled (default).

    The device resolver records ``request.remote_addr`` as the fallback client
    IP, so behind a single reverse proxy the address must come from
    ``X-Forwarded-For`` rather than the proxy socket. ``PROXYFIX_HOPS`` sets
    how many proxies are trusted.
    """
    if not app.config.get("USE_PROXYFIX", True):
        return
    hops = int(app.config.get("PROXYFIX_HOPS", 1))
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=hops, x_proto=hops, x_host=hops)
