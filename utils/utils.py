# utils/utils.py

"""
Utility functions for console output and redaction of sensitive values.
Author: Johandré van Deventer
Date: 2025-06-13
"""

import json
from typing import Any, Iterable, Mapping, Optional

REDACTED = "***"

SENSITIVE_KEYS = frozenset(
    {
        "password",
        "code_verifier",
        "codeverifier",
        "access_token",
        "accesstoken",
        "token",
        "authorization",
        "cookie",
        "set-cookie",
    }
)


def print_header(header: str = "Header", width: int = 80) -> None:
    """Print a formatted header with a specified width."""
    print("\n" + "=" * width)
    print(f"{header.center(width)}")
    print("=" * width + "\n")


def print_sub_header(sub_header: str = "Subheader", width: int = 80) -> None:
    """Print a formatted sub-header with a specified width."""
    print("\n" + "-" * width)
    print(f"{sub_header}")
    print("-" * width + "\n")


def is_sensitive_key(key: Any) -> bool:
    return str(key).strip().lower() in SENSITIVE_KEYS


def redact(value: Any) -> Any:
    """Return a copy of value with every sensitive field masked.

    Mappings are walked recursively, lists and tuples element-wise.
    Anything else is returned unchanged.
    """
    if isinstance(value, Mapping):
        return {
            key: REDACTED if is_sensitive_key(key) else redact(item)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [redact(item) for item in value]
    return value


def redact_pairs(pairs: Iterable[tuple[str, str]]) -> list[tuple[str, str]]:
    """Mask sensitive values in (key, value) pairs such as a parsed form body."""
    return [(key, REDACTED if is_sensitive_key(key) else value) for key, value in pairs]


def format_payload(payload: Optional[Any]) -> str:
    """Render a (redacted) payload for console output."""
    if payload is None:
        return "<empty>"
    try:
        return json.dumps(redact(payload), indent=2, default=str)
    except (TypeError, ValueError):
        return str(payload)
