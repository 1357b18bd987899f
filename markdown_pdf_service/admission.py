"""
Network admission policy applied to every request a document issues while it loads.

Network images and media are refused to keep PDFs small and loads fast, web
fonts are only fetched from hosts serving the math typesetting assets, and
everything else the document needs (stylesheets, scripts) goes through.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Sequence
from urllib.parse import urlparse

from .log import logger


TRUSTED_FONT_HOSTS = ("cdn.jsdelivr.net",)

ALWAYS_ALLOWED = frozenset({"document", "stylesheet"})
ALWAYS_ABORTED = frozenset({"image", "media", "websocket"})


class Admission(Enum):
    ALLOW = "allow"
    ABORT = "abort"


def _host_is_trusted(url: str, trusted_hosts: Iterable[str]) -> bool:
    host = (urlparse(url).hostname or "").lower()
    if not host:
        return False
    for trusted in trusted_hosts:
        trusted = trusted.lower()
        if host == trusted or host.endswith("." + trusted):
            return True
    return False


def admit(resource_type: str, url: str, trusted_font_hosts: Sequence[str] = TRUSTED_FONT_HOSTS) -> Admission:
    """Decide whether a request of the given resource type may hit the network."""
    if resource_type in ALWAYS_ALLOWED:
        return Admission.ALLOW
    if resource_type == "font":
        if _host_is_trusted(url, trusted_font_hosts):
            return Admission.ALLOW
        return Admission.ABORT
    if resource_type in ALWAYS_ABORTED:
        return Admission.ABORT
    return Admission.ALLOW


@dataclass
class AdmissionStats:
    allowed: int = 0
    aborted: int = 0


async def install_admission_filter(page, trusted_font_hosts: Optional[Sequence[str]] = None) -> AdmissionStats:
    """Route every request and WebSocket connection of ``page`` through ``admit``.

    Must be awaited before any content is set on the page.
    """
    hosts = tuple(trusted_font_hosts) if trusted_font_hosts is not None else TRUSTED_FONT_HOSTS
    stats = AdmissionStats()

    async def handle(route):
        request = route.request
        decision = admit(request.resource_type, request.url, hosts)
        if decision is Admission.ALLOW:
            stats.allowed += 1
            await route.continue_()
        else:
            stats.aborted += 1
            logger.debug(f"Blocked {request.resource_type} request: {request.url}")
            await route.abort()

    async def handle_socket(ws):
        # WebSocket connections bypass page.route; never connecting them to the server blocks them
        stats.aborted += 1
        logger.debug(f"Blocked websocket connection: {ws.url}")
        await ws.close()

    await page.route("**/*", handle)
    await page.route_web_socket("**/*", handle_socket)
    return stats
