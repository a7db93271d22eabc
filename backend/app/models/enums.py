"""Closed value sets shared by models, schemas and services.

Stored as plain strings in the database; the enums keep Python callers honest.
"""

from enum import StrEnum


class Role(StrEnum):
    EMPLOYEE = "employee"
    ADMIN = "admin"


class Reaction(StrEnum):
    UPVOTE = "upvote"
    LIKE = "like"


class RequestStatus(StrEnum):
    PENDING = "pending"
    BACKLOG = "backlog"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    REJECTED = "rejected"
    DUPLICATE = "duplicate"
    ARCHIVED = "archived"


class Category(StrEnum):
    BUG = "bug"
    NEW_FEATURE = "new_feature"
    OPTIMIZATION = "optimization"


class Priority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Team(StrEnum):
    MANUFACTURING = "Manufacturing"
    SALES = "Sales"
    SERVICE = "Service"
    ENERGY = "Energy"


class Region(StrEnum):
    EMEA = "EMEA"
    NORTH_AMERICA = "North America"
    APAC = "APAC"
    GLOBAL = "Global"


class ActivityKind(StrEnum):
    STATUS_CHANGE = "status_change"
    MERGE = "merge"
    MERGE_RECEIVED = "merge_received"
