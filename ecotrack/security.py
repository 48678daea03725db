"""Security helpers for HTTP response headers."""
from __future__ import annotations

from typing import Dict, List, Union

from flask_talisman import Talisman

CSPDirective = Dict[str, Union[List[str], str]]

# The API only ever returns JSON; nothing it serves should load sub-resources.
BASE_CSP: CSPDirective = {
    "default-src": "'none'",
    "frame-ancestors": "'none'",
    "base-uri": "'none'",
    "form-action": "'self'",
}


def build_csp() -> CSPDirective:
    return dict(BASE_CSP)


talisman = Talisman()
