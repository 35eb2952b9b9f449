"""
Phone number canonicalization.

Turns a raw number plus a country-code hint into one comparable E.164 form,
and derives the variants the roster matcher needs.
"""

import re
import logging
from dataclasses import dataclass, asdict

import phonenumbers

from .errors import InvalidPhoneNumber

logger = logging.getLogger(__name__)

DEFAULT_COUNTRY_CODE = "+91"
MIN_NATIONAL_DIGITS = 7
FALLBACK_NATIONAL_DIGITS = 10

# Heuristic only: not a full calling-code database. First match wins.
LOCAL_PREFIXES = ("+49", "+91", "+1", "+44", "+33", "+86", "+81", "+55", "+61")

_SEPARATORS_RE = re.compile(r"[\s()\-]")
_NON_DIGIT_RE = re.compile(r"\D")


@dataclass(frozen=True)
class NormalizedPhone:
    """A phone number in every form the core compares on."""
    raw: str  # As entered, outer whitespace trimmed
    cleaned: str  # Separators removed
    e164: str
    country_code: str  # e.g. "+91"
    national_number: str
    local_digits: str
    all_digits: str

    def to_dict(self) -> dict:
        return asdict(self)


def digits_only(value: str) -> str:
    """Strip every non-digit character."""
    return _NON_DIGIT_RE.sub("", value or "")


def normalize_country_code(hint: str) -> str:
    """Normalize "91", "+91" or " +91 " to "+91"."""
    digits = digits_only(hint or "")
    if not digits or len(digits) > 3:
        raise InvalidPhoneNumber(f"Invalid country code: {hint!r}")
    if int(digits) not in phonenumbers.COUNTRY_CODE_TO_REGION_CODE:
        raise InvalidPhoneNumber(f"Unknown country code: {hint!r}")
    return "+" + digits


def strip_local_prefix(e164: str) -> str:
    """
    Strip a well-known calling code from the front of an E.164 number.

    Numbers whose calling code is not in LOCAL_PREFIXES come back unchanged.
    """
    for prefix in LOCAL_PREFIXES:
        if e164.startswith(prefix):
            return e164[len(prefix):]
    return e164


def _parse_with_library(cleaned: str, country_code: str):
    """Return (country_code, national_number) or None if the library can't vouch for it."""
    try:
        if cleaned.startswith("+"):
            parsed = phonenumbers.parse(cleaned, None)
        else:
            region = phonenumbers.region_code_for_country_code(int(country_code[1:]))
            if region == phonenumbers.UNKNOWN_REGION:
                parsed = phonenumbers.parse(country_code + cleaned, None)
            else:
                parsed = phonenumbers.parse(cleaned, region)
    except phonenumbers.NumberParseException as e:
        logger.debug(f"phonenumbers could not parse input: {e}")
        return None

    if not phonenumbers.is_valid_number(parsed):
        return None

    return f"+{parsed.country_code}", str(parsed.national_number)


def _split_calling_code(digits: str):
    """Split international digits into a 1-3 digit calling code and the rest."""
    if not digits or digits.startswith("0"):
        return None
    for size in (1, 2, 3):
        code = digits[:size]
        if int(code) in phonenumbers.COUNTRY_CODE_TO_REGION_CODE:
            return "+" + code, digits[size:]
    return None


def _parse_fallback(cleaned: str, country_code: str):
    if cleaned.startswith("+"):
        split = _split_calling_code(cleaned[1:])
        if split is None:
            raise InvalidPhoneNumber("Unknown calling code")
        return split

    digits = cleaned
    if len(digits) > FALLBACK_NATIONAL_DIGITS:
        digits = digits[-FALLBACK_NATIONAL_DIGITS:]
    return country_code, digits


def normalize(raw_number: str, country_code_hint: str = DEFAULT_COUNTRY_CODE) -> NormalizedPhone:
    """
    Canonicalize a phone number.

    Args:
        raw_number: Number as entered, in any common format
        country_code_hint: Calling code to assume when the number has no "+"

    Returns:
        NormalizedPhone

    Raises:
        InvalidPhoneNumber: Empty, too short, or non-numeric input

    Examples:
        normalize("+91 98765 43210").e164 -> "+919876543210"
        normalize("9876543210", "+91").e164 -> "+919876543210"
        normalize("(987) 654-3210", "91").local_digits -> "9876543210"
    """
    if not raw_number or not isinstance(raw_number, str) or not raw_number.strip():
        raise InvalidPhoneNumber("Phone number is required")

    raw = raw_number.strip()
    cleaned = _SEPARATORS_RE.sub("", raw)
    body = cleaned[1:] if cleaned.startswith("+") else cleaned

    if not body.isdigit():
        raise InvalidPhoneNumber("Phone number must contain only digits")
    if len(body) < MIN_NATIONAL_DIGITS:
        raise InvalidPhoneNumber("Phone number is too short")

    country_code = normalize_country_code(country_code_hint or DEFAULT_COUNTRY_CODE)

    parsed = _parse_with_library(cleaned, country_code)
    if parsed is None:
        parsed = _parse_fallback(cleaned, country_code)
    code, national = parsed

    if len(national) < MIN_NATIONAL_DIGITS:
        raise InvalidPhoneNumber("Phone number is too short")

    e164 = code + national
    return NormalizedPhone(
        raw=raw,
        cleaned=cleaned,
        e164=e164,
        country_code=code,
        national_number=national,
        local_digits=strip_local_prefix(e164),
        all_digits=digits_only(e164),
    )


def mask_phone(phone: str) -> str:
    """Mask all but the last four digits for logging."""
    if not phone or len(phone) <= 4:
        return "****"
    return "*" * (len(phone) - 4) + phone[-4:]
