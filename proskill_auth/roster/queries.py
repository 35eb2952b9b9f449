"""
Roster search predicates.

Roster phone fields were filled in by third parties in whatever format they
liked, so one number is searched as many equivalent variants at once.
"""

import re
from typing import List, Literal, Optional
from dataclasses import dataclass

from .records import FIELD_PHONE, FIELD_PHONE_E164, FIELD_PHONE_DIGITS, FIELD_PHONE_RAW
from ..phone import NormalizedPhone, digits_only
from ..sanitize import escape_regex

PredicateKind = Literal["exact", "regex"]

# Separators tolerated between digits in suffix matches
_SUFFIX_GAP = r"[\s().-]*"


@dataclass(frozen=True)
class PhonePredicate:
    """One field comparison; the roster is queried with the OR of all of them."""
    field: str
    value: str
    kind: PredicateKind = "exact"

    def to_mongo(self) -> dict:
        if self.kind == "regex":
            return {self.field: {"$regex": self.value}}
        return {self.field: self.value}

    def matches(self, doc: dict) -> bool:
        candidate = doc.get(self.field)
        if not isinstance(candidate, str):
            return False
        if self.kind == "regex":
            return re.search(self.value, candidate) is not None
        return candidate == self.value


def anchored_pattern(value: str) -> str:
    """Whole-field match, tolerating trailing whitespace."""
    return f"^{escape_regex(value)}\\s*$"


def suffix_pattern(digits: str) -> str:
    """Field ends with these digits, with any separators between them."""
    return _SUFFIX_GAP.join(escape_regex(d) for d in digits) + "$"


class _PredicateList:
    def __init__(self):
        self.items: List[PhonePredicate] = []
        self._seen = set()

    def add(self, field: str, value: Optional[str], kind: PredicateKind = "exact", source: Optional[str] = None):
        # Regex predicates are dropped when the text they were built from is blank
        basis = value if source is None else source
        if not basis or not basis.strip():
            return
        predicate = PhonePredicate(field=field, value=value, kind=kind)
        if predicate in self._seen:
            return
        self._seen.add(predicate)
        self.items.append(predicate)


def build_phone_predicates(phone: NormalizedPhone) -> List[PhonePredicate]:
    """
    Build the de-duplicated list of roster predicates for a number.

    Order of construction:
        1. exact E.164 and national-number digits
        2. exact raw/cleaned string against phone and phoneRaw
        3. exact local variant (string and digits) and raw digits
        4. anchored regexes for cleaned, local and digits-only
        5. suffix regexes of the local digits
    """
    entered = phone.raw
    cleaned = re.sub(r"\s+", "", entered)
    entered_digits = digits_only(entered)
    local = phone.local_digits
    local_digits = digits_only(local)

    predicates = _PredicateList()

    predicates.add(FIELD_PHONE_E164, phone.e164)
    predicates.add(FIELD_PHONE_DIGITS, digits_only(phone.national_number))

    for field in (FIELD_PHONE, FIELD_PHONE_RAW):
        predicates.add(field, entered)
        predicates.add(field, cleaned)

    for field in (FIELD_PHONE, FIELD_PHONE_RAW):
        predicates.add(field, local)
        predicates.add(field, local_digits)
    for field in (FIELD_PHONE, FIELD_PHONE_RAW, FIELD_PHONE_DIGITS):
        predicates.add(field, entered_digits)

    for value in (cleaned, local, entered_digits):
        for field in (FIELD_PHONE, FIELD_PHONE_RAW):
            predicates.add(field, anchored_pattern(value), "regex", source=value)

    for field in (FIELD_PHONE, FIELD_PHONE_RAW, FIELD_PHONE_DIGITS):
        predicates.add(field, suffix_pattern(local_digits), "regex", source=local_digits)

    return predicates.items


def to_mongo_filter(predicates: List[PhonePredicate]) -> dict:
    return {"$or": [p.to_mongo() for p in predicates]}
