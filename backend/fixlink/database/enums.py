"""
backend/fixlink/database/enums.py

Enumerations

Defines enumerations shared across the platform:
- UserRole: Roles carried by the identity context (Customer, Worker, Admin)
- ServiceCategory: Trades a request can be raised for
- ProfileStatus: Review state of a worker profile
- Urgency: How quickly the customer needs the work done
- TimeSlot: Preferred part of the day for the visit
"""

from enum import Enum

# ---------------------------------------------------
# User Role Enumeration
# ---------------------------------------------------


class UserRole(str, Enum):
    """
    Enum representing user roles for access control.

    Values:
    - CUSTOMER
    - WORKER
    - ADMIN
    """

    CUSTOMER = "CUSTOMER"
    WORKER = "WORKER"
    ADMIN = "ADMIN"


# ---------------------------------------------------
# Service Category Enumeration
# ---------------------------------------------------


class ServiceCategory(str, Enum):
    PLUMBING = "plumbing"
    ELECTRICAL = "electrical"
    CARPENTRY = "carpentry"
    PAINTING = "painting"
    MASONRY = "masonry"
    WELDING = "welding"
    AIR_CONDITIONING = "air-conditioning"
    APPLIANCE_REPAIR = "appliance-repair"
    LANDSCAPING = "landscaping"
    ROOFING = "roofing"
    FLOORING = "flooring"
    PEST_CONTROL = "pest-control"
    CLEANING = "cleaning"
    MOVING = "moving"
    OTHER = "other"


# ---------------------------------------------------
# Worker Profile Status Enumeration
# ---------------------------------------------------


class ProfileStatus(str, Enum):
    """
    Only ACTIVE profiles are offered to customers by the matcher.
    """

    INCOMPLETE = "incomplete"
    PENDING_REVIEW = "pending_review"
    ACTIVE = "active"
    SUSPENDED = "suspended"


# ---------------------------------------------------
# Request Urgency / Schedule Enumerations
# ---------------------------------------------------


class Urgency(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    EMERGENCY = "emergency"


class TimeSlot(str, Enum):
    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"
    ANYTIME = "anytime"
