"""
rkentry - Locale Matching

Entries may be scoped to a deployment locale written as
``<realm>::<region>::<az>::<domain>``. A part that is "*" or empty matches any
value; any other part must equal the environment value.
"""

from __future__ import annotations

from typing import Optional

from rkentry.settings import LocaleSettings

WILDCARD = "*"
SEPARATOR = "::"


def _or_wildcard(value: str) -> str:
    return value or WILDCARD


def match_locale(locale: str, settings: Optional[LocaleSettings] = None) -> bool:
    """
    Check a locale string against REALM, REGION, AZ and DOMAIN.

    >>> match_locale("*::*::*::*")
    True
    """
    if not locale:
        return False

    parts = locale.split(SEPARATOR)
    if len(parts) != 4:
        return False

    settings = settings or LocaleSettings()
    for wanted, actual in zip(parts, settings.as_tuple()):
        if _or_wildcard(wanted) != WILDCARD and wanted != actual:
            return False
    return True


def is_valid_domain(domain: str, settings: Optional[LocaleSettings] = None) -> bool:
    """Check a domain against DOMAIN; empty and "*" match anything."""
    domain = _or_wildcard(domain)
    if domain == WILDCARD:
        return True
    settings = settings or LocaleSettings()
    return domain == _or_wildcard(settings.domain)
