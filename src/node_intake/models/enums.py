"""Closed vocabularies for node records and batch/staging lifecycles.

CSV values are matched case-sensitively against the enum *values*.
"""

from __future__ import annotations

import enum


class NodeCategory(str, enum.Enum):
    PMS = "PMS"
    CRS = "CRS"
    CM = "CM"
    BOOKING_ENGINE = "BookingEngine"
    RMS = "RMS"
    SWITCH = "Switch"
    AGGREGATOR = "Aggregator"
    DISTRIBUTOR = "Distributor"
    META = "Meta"
    OTA = "OTA"
    WHOLESALER = "Wholesaler"
    CMS = "CMS"
    ENRICHMENT = "Enrichment"
    PAYMENT_GATEWAY = "PaymentGateway"
    OTHER = "Other"


class Direction(str, enum.Enum):
    SUPPLY = "Supply"
    DEMAND = "Demand"
    SUPPLY_SWITCH = "Supply Switch"
    DEMAND_SWITCH = "Demand Switch"
    NONE = "None"


class Protocol(str, enum.Enum):
    PUSH_API = "PushAPI"
    PULL_API = "PullAPI"
    LIVE_SEARCH = "LiveSearch"
    OTHER = "Other"


class DataType(str, enum.Enum):
    AVAILABILITY = "Availability"
    RATES = "Rates"
    RESTRICTIONS = "Restrictions"
    BOOKINGS = "Bookings"
    CONTENT = "Content"
    POLICIES = "Policies"
    PAYMENT_DETAILS = "PaymentDetails"
    ANALYTICS = "Analytics"


class BatchStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSED = "processed"
    ERROR = "error"
    CANCELLED = "cancelled"
    ROLLED_BACK = "rolled_back"


class StagingStatus(str, enum.Enum):
    PENDING = "pending"
    REVIEWED = "reviewed"
    APPROVED = "approved"
    REJECTED = "rejected"
    MERGED = "merged"


def enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    """Return the declared values of *enum_cls* in declaration order."""
    return [member.value for member in enum_cls]


NODE_CATEGORIES = frozenset(enum_values(NodeCategory))
DIRECTIONS = frozenset(enum_values(Direction))
PROTOCOLS = frozenset(enum_values(Protocol))
DATA_TYPES = frozenset(enum_values(DataType))

# Staging rows in these states have not been decided yet
OPEN_STAGING_STATUSES = frozenset({StagingStatus.PENDING.value, StagingStatus.REVIEWED.value})
