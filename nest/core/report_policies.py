"""Report lifecycle policy constants."""

from __future__ import annotations

CATEGORIES = ("water", "electricity", "noise", "pothole", "cleanliness", "playground", "other")

SUBCATEGORIES: dict[str, tuple[str, ...]] = {
    "water": ("leak", "pressure", "quality", "outage"),
    "electricity": ("power_outage", "fluctuation", "streetlight", "wire"),
    "noise": ("music", "party", "construction", "vehicle", "alarm", "animal"),
    "pothole": ("road", "sidewalk"),
    "cleanliness": ("garbage", "graffiti", "debris"),
    "playground": ("swing", "slide", "equipment", "fence"),
    "other": ("other",),
}

SEVERITIES = ("low", "medium", "high", "critical")

STATUSES = ("pending", "in-progress", "resolved", "rejected")
TERMINAL_STATUSES = frozenset({"resolved", "rejected"})

# from-status -> allowed to-statuses
ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    "pending": frozenset({"in-progress", "resolved", "rejected"}),
    "in-progress": frozenset({"resolved", "rejected"}),
    "resolved": frozenset(),
    "rejected": frozenset(),
}

STAFF_ROLES = frozenset({"admin", "moderator"})

# Fields a report patch may touch, per relationship to the report
OWNER_EDITABLE_FIELDS = frozenset({"title", "description", "severity"})
STAFF_EDITABLE_FIELDS = OWNER_EDITABLE_FIELDS | {"status", "assigned_to"}

# Upvote count at which staff hear about a popular report
POPULAR_REPORT_THRESHOLD = 5

# Categories whose images are checked by the AI collaborator
AI_ANALYZED_CATEGORIES = frozenset({"pothole", "cleanliness"})

DEFAULT_NEARBY_DISTANCE_M = 5000
DEFAULT_NEARBY_LIMIT = 10

# Predictions
PREDICTION_WINDOW_DAYS = 90
PREDICTION_MIN_REPORTS = 3
PREDICTION_HORIZON_DAYS = 30
PREDICTION_RADIUS_M = 500
PREDICTION_TYPE_BY_CATEGORY: dict[str, str] = {
    "water": "water_leak",
    "electricity": "outage",
    "pothole": "pothole",
    "noise": "noise",
    "cleanliness": "cleanliness",
}
PREDICTION_STATUSES = ("active", "verified", "resolved", "false_positive")


def is_staff(role: str | None) -> bool:
    return role in STAFF_ROLES


def can_transition(current: str, target: str) -> bool:
    """Return True if a report may move from `current` to `target`."""
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def subcategory_allowed(category: str, subcategory: str | None) -> bool:
    if subcategory is None or subcategory == "other":
        return True
    return subcategory in SUBCATEGORIES.get(category, ())
