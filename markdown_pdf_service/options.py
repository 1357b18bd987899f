"""
Per-request PDF settings and the margin helpers that validate them.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .errors import InputError


PAGE_FORMATS = ("A4", "Letter")
DEFAULT_PAGE_FORMAT = "A4"

_MARGIN_RE = re.compile(r'^(-?\d+(?:\.\d+)?(?:[eE][+-]?\d+)?)\s*(cm|in|mm|pt|px)?$')
_UNITS_PER_INCH = {'in': 1.0, 'cm': 2.54, 'mm': 25.4, 'pt': 72.0, 'px': 96.0}

MAX_MARGIN_INCHES = 3


def validate_margin(margin_str: str) -> str:
    """Validate and normalize a single margin value ("20mm", "1in", "2.5cm" ...).

    A value without a unit is taken as inches. Margins must lie between 0 and 3 inches.
    """
    if not isinstance(margin_str, str):
        raise InputError(f"Invalid margin value: {margin_str!r}. Margins must be strings like '20mm'.")

    match = _MARGIN_RE.match(margin_str.strip())
    if not match:
        raise InputError(f"Invalid margin format: '{margin_str}'. Use format like '1in', '2.5cm', '10mm', etc.")

    value_str, unit = match.groups()
    value = float(value_str)
    unit = unit or 'in'

    value_inches = value / _UNITS_PER_INCH[unit]
    if value_inches < 0:
        raise InputError(f"Margin cannot be negative: '{margin_str}'. Minimum value is 0.")
    if value_inches > MAX_MARGIN_INCHES:
        raise InputError(f"Margin too large: '{margin_str}'. Maximum value is 3 inches (7.62cm).")

    # Keep integral values compact: "20mm" rather than "20.0mm"
    number = int(value) if value.is_integer() else value
    return f"{number}{unit}"


@dataclass(frozen=True)
class Margins:
    top: str = "20mm"
    right: str = "15mm"
    bottom: str = "20mm"
    left: str = "15mm"

    @classmethod
    def parse(cls, shorthand: str) -> "Margins":
        """Parse CSS margin shorthand with 1, 2 or 4 values."""
        parts = shorthand.split()

        if len(parts) == 1:
            margin = validate_margin(parts[0])
            return cls(margin, margin, margin, margin)
        elif len(parts) == 2:
            vertical = validate_margin(parts[0])
            horizontal = validate_margin(parts[1])
            return cls(vertical, horizontal, vertical, horizontal)
        elif len(parts) == 4:
            top, right, bottom, left = (validate_margin(p) for p in parts)
            return cls(top, right, bottom, left)
        raise InputError(f"Invalid margin format: '{shorthand}'. Use 1, 2, or 4 values.")

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Margins":
        """Build margins from ``{top, right, bottom, left}``; missing sides keep their default."""
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise InputError("margin must be an object with top, right, bottom and left")
        unknown = set(data) - {"top", "right", "bottom", "left"}
        if unknown:
            raise InputError(f"Unknown margin side(s): {', '.join(sorted(unknown))}")
        defaults = cls()
        return cls(**{
            side: validate_margin(data[side]) if side in data else getattr(defaults, side)
            for side in ("top", "right", "bottom", "left")
        })

    def as_dict(self) -> Dict[str, str]:
        return {"top": self.top, "right": self.right, "bottom": self.bottom, "left": self.left}


@dataclass(frozen=True)
class PdfOptions:
    """Immutable PDF settings for one conversion.

    ``page_format`` is checked against PAGE_FORMATS when the PDF is produced,
    so a bad value surfaces as a render failure rather than an input failure.
    """

    page_format: str = DEFAULT_PAGE_FORMAT
    margin: Margins = field(default_factory=Margins)
    display_header_footer: bool = False
    header_template: str = ""
    footer_template: str = ""

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "PdfOptions":
        """Build options from the camelCase wire shape used by the HTTP API."""
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise InputError("options must be a JSON object")

        page_format = data.get("pageFormat", DEFAULT_PAGE_FORMAT)
        if not isinstance(page_format, str):
            raise InputError("options.pageFormat must be a string")

        display = data.get("displayHeaderFooter", False)
        if not isinstance(display, bool):
            raise InputError("options.displayHeaderFooter must be a boolean")

        templates = {}
        for key in ("headerTemplate", "footerTemplate"):
            value = data.get(key)
            if value is None:
                value = ""
            if not isinstance(value, str):
                raise InputError(f"options.{key} must be a string")
            templates[key] = value

        return cls(
            page_format=page_format,
            margin=Margins.from_dict(data.get("margin")),
            display_header_footer=display,
            header_template=templates["headerTemplate"],
            footer_template=templates["footerTemplate"],
        )

    def pdf_kwargs(self) -> Dict[str, Any]:
        """Keyword arguments for Playwright's ``page.pdf()``."""
        return {
            "format": self.page_format,
            "margin": self.margin.as_dict(),
            "display_header_footer": self.display_header_footer,
            "header_template": self.header_template,
            "footer_template": self.footer_template,
            "print_background": True,
            "prefer_css_page_size": False,
        }
