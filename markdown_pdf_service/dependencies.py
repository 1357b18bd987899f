"""
Checks that the runtime pieces the converter needs are installed.
"""

import importlib
import os
import subprocess
import sys
from typing import List, Tuple

from colorama import Fore, Style


REQUIRED_PACKAGES: List[Tuple[str, str]] = [
    ("playwright", "playwright"),
    ("markdown_it", "markdown-it-py"),
    ("mdit_py_plugins", "mdit-py-plugins"),
    ("pygments", "Pygments"),
]

OPTIONAL_PACKAGES: List[Tuple[str, str]] = [
    ("fastapi", "fastapi"),
    ("uvicorn", "uvicorn"),
]


def _report(ok: bool, message: str) -> None:
    if ok:
        print(f"{Fore.GREEN}✓{Style.RESET_ALL} {message}")
    else:
        print(f"{Fore.RED}✗{Style.RESET_ALL} {message}")


def check_package(module: str, dist_name: str) -> bool:
    """Check if a Python package is importable."""
    try:
        importlib.import_module(module)
    except ImportError:
        _report(False, f"Error: {dist_name} is required but not found. Run: pip install {dist_name}")
        return False
    _report(True, f"{dist_name} is available")
    return True


def chromium_installed() -> bool:
    """Check that Playwright's Chromium build has been downloaded."""
    from playwright.sync_api import sync_playwright

    with sync_playwright() as p:
        return os.path.exists(p.chromium.executable_path)


def check_chromium() -> bool:
    try:
        installed = chromium_installed()
    except Exception as e:
        _report(False, f"Could not query Playwright for Chromium: {e}")
        return False
    if not installed:
        _report(False, "Playwright Chromium is not installed. Run: playwright install chromium")
        return False
    _report(True, "Playwright Chromium is available")
    return True


def install_chromium() -> bool:
    """Download Playwright's Chromium build."""
    print("Installing Playwright Chromium...")
    try:
        subprocess.run([sys.executable, "-m", "playwright", "install", "chromium"],
                       check=True, capture_output=True, text=True)
    except subprocess.CalledProcessError as e:
        _report(False, f"Failed to install Playwright Chromium: {e.stderr}")
        return False
    _report(True, "Playwright Chromium installed successfully")
    return True


def check_dependencies(check_optional: bool = True) -> bool:
    """Report on every dependency; True when all required ones are present."""
    ok = all([check_package(module, dist) for module, dist in REQUIRED_PACKAGES])
    if ok:
        ok = check_chromium()
    if check_optional:
        for module, dist in OPTIONAL_PACKAGES:
            check_package(module, dist)
    return ok
