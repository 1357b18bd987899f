"""Unit tests for the resource admission policy."""

import asyncio

import pytest

from markdown_pdf_service.admission import Admission, admit, install_admission_filter

from fakes import FakePage, FakeRoute, FakeWebSocketRoute


KATEX_FONT = "https://cdn.jsdelivr.net/npm/katex@0.16.23/dist/fonts/KaTeX_Main-Regular.woff2"


@pytest.mark.unit
@pytest.mark.parametrize("resource_type", ["document", "stylesheet"])
def test_documents_and_stylesheets_always_allowed(resource_type):
    assert admit(resource_type, "https://example.com/anything") is Admission.ALLOW


@pytest.mark.unit
@pytest.mark.parametrize("resource_type", ["image", "media", "websocket"])
def test_images_media_and_sockets_always_aborted(resource_type):
    assert admit(resource_type, KATEX_FONT) is Admission.ABORT
    assert admit(resource_type, "https://example.com/cat.png") is Admission.ABORT


@pytest.mark.unit
def test_font_from_trusted_math_host_allowed():
    assert admit("font", KATEX_FONT) is Admission.ALLOW


@pytest.mark.unit
@pytest.mark.parametrize("url", [
    "https://fonts.gstatic.com/s/notosans/v1/font.woff2",
    "https://cdn.jsdelivr.net.evil.example/font.woff2",
    "data:font/woff2;base64,AAAA",
])
def test_font_from_untrusted_host_aborted(url):
    assert admit("font", url) is Admission.ABORT


@pytest.mark.unit
def test_font_from_subdomain_of_trusted_host_allowed():
    assert admit("font", "https://fonts.example.org/a.woff2", ["example.org"]) is Admission.ALLOW


@pytest.mark.unit
@pytest.mark.parametrize("resource_type", ["script", "fetch", "xhr", "other"])
def test_other_resource_types_allowed(resource_type):
    assert admit(resource_type, "https://cdn.jsdelivr.net/npm/katex/dist/katex.min.js") is Admission.ALLOW


@pytest.mark.unit
def test_installed_filter_routes_every_request():
    page = FakePage()

    async def scenario():
        stats = await install_admission_filter(page)
        pattern, handler = page.routes[0]
        routes = [
            FakeRoute("stylesheet", "https://cdn.jsdelivr.net/npm/katex/dist/katex.min.css"),
            FakeRoute("font", KATEX_FONT),
            FakeRoute("font", "https://fonts.gstatic.com/x.woff2"),
            FakeRoute("image", "https://example.com/cat.png"),
        ]
        for route in routes:
            await handler(route)
        return pattern, stats, routes

    pattern, stats, routes = asyncio.run(scenario())

    assert pattern == "**/*"
    assert [r.outcome for r in routes] == ["continue", "continue", "abort", "abort"]
    assert stats.allowed == 2
    assert stats.aborted == 2


@pytest.mark.unit
def test_installed_filter_closes_websockets():
    page = FakePage()

    async def scenario():
        stats = await install_admission_filter(page)
        pattern, handler = page.socket_routes[0]
        socket = FakeWebSocketRoute("wss://cdn.jsdelivr.net/live")
        await handler(socket)
        return pattern, stats, socket

    pattern, stats, socket = asyncio.run(scenario())

    assert pattern == "**/*"
    assert socket.closed
    assert stats.aborted == 1
    assert page.events == ["route", "route_web_socket"]
