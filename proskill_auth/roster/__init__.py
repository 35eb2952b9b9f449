"""
Student roster lookup.

Matches a verifying phone number against the external Flowline roster.
"""

from .records import StudentRecord
from .queries import PhonePredicate, build_phone_predicates, to_mongo_filter
from .source import RosterSource, MongoRosterSource, InMemoryRosterSource, create_roster_source
from .resolver import IdentityResolver, PendingLookup

__all__ = [
    "StudentRecord",
    "PhonePredicate",
    "build_phone_predicates",
    "to_mongo_filter",
    "RosterSource",
    "MongoRosterSource",
    "InMemoryRosterSource",
    "create_roster_source",
    "IdentityResolver",
    "PendingLookup",
]
