"""NAPWATCH — Value Normalization.

Canonical forms used before comparing platform values with the master record,
so that cosmetically different but equivalent values are not flagged.
"""

import re

_NON_DIGIT = re.compile(r"\D")
_TRUNK_PREFIX = re.compile(r"\(\s*0\s*\)")
_NON_ALNUM = re.compile(r"[^\w\s]", re.UNICODE)
_WHITESPACE = re.compile(r"\s+")
_STREET_SUFFIX = re.compile(r"(stra(ss|ß)e|str\.)", re.IGNORECASE)
_SCHEME = re.compile(r"^[a-z][a-z0-9+.-]*://")


def normalize_phone(phone: str, default_country_code: str = "49") -> str:
    """Reduce a phone number to international digits.

    '+49 30 12345678', '+49 (0)30 12345678', '0049 30 12345678' and
    '030 12345678' all become '493012345678' with the default country code 49.
    """
    if not phone:
        return ""
    raw = phone.strip()
    if raw.startswith(("+", "00")):
        # '+49 (0)30 ...': the bracketed trunk prefix is not dialled internationally
        raw = _TRUNK_PREFIX.sub("", raw)
    digits = _NON_DIGIT.sub("", raw)
    if raw.startswith("+"):
        return digits
    if digits.startswith("00"):
        return digits[2:]
    if digits.startswith("0") and default_country_code:
        return default_country_code + digits[1:]
    return digits


def normalize_text(value: str) -> str:
    """Casefold, drop punctuation, collapse whitespace."""
    if not value:
        return ""
    value = _NON_ALNUM.sub("", value.casefold())
    return _WHITESPACE.sub(" ", value).strip()


def normalize_address_component(value: str) -> str:
    """Like normalize_text, with street suffix spellings unified to 'str'."""
    if not value:
        return ""
    return normalize_text(_STREET_SUFFIX.sub("str", value.casefold()))


def normalize_email(email: str) -> str:
    return (email or "").strip().casefold()


def normalize_website(url: str) -> str:
    """'https://www.Example.com/' -> 'example.com'."""
    if not url:
        return ""
    value = _SCHEME.sub("", url.strip().casefold())
    if value.startswith("www."):
        value = value[4:]
    return value.rstrip("/")
