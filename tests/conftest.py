"""Shared fixtures for the unit and integration tests."""

import pytest

from markdown_pdf_service.config import Config
from markdown_pdf_service.converter import MarkdownPdfConverter
from markdown_pdf_service.session import RenderSessionManager

from fakes import FakeLauncher


@pytest.fixture
def launcher():
    return FakeLauncher()


@pytest.fixture
def config():
    return Config()


@pytest.fixture
def sessions(launcher, config):
    return RenderSessionManager(config, launcher=launcher)


@pytest.fixture
def converter(sessions, config):
    return MarkdownPdfConverter(sessions, config)


@pytest.fixture
def sample_markdown():
    return (
        "# Sample Document\n\n"
        "| Feature | Status |\n"
        "|---------|--------|\n"
        "| Math    | yes    |\n\n"
        "```python\n"
        "def greet(name):\n"
        "    return f\"Hello, {name}!\"\n"
        "```\n\n"
        "Inline math $E = mc^2$ and a block:\n\n"
        "$$\n"
        "\\int_0^1 x^2 dx = \\frac{1}{3}\n"
        "$$\n"
    )
