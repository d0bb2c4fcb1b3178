from prepdeck.models.entry import (
    RECORD_FIELDS,
    REQUIRED_FIELDS,
    Entry,
    EntryList,
    EntryUpdate,
)
from prepdeck.models.review import (
    CategoryStats,
    Grade,
    ReviewRequest,
    ReviewResult,
    ReviewSession,
    ReviewState,
    ReviewStats,
    SessionItem,
)

__all__ = [
    "CategoryStats",
    "Entry",
    "EntryList",
    "EntryUpdate",
    "Grade",
    "RECORD_FIELDS",
    "REQUIRED_FIELDS",
    "ReviewRequest",
    "ReviewResult",
    "ReviewSession",
    "ReviewState",
    "ReviewStats",
    "SessionItem",
]
