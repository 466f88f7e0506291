"""
database/models.py

Model registry. Importing this module registers every mapped table on
`Base.metadata` (used by Alembic and by test schema creation).
"""

from fixlink.customer.models import CustomerProfile
from fixlink.engagement.models import Engagement, EngagementDispatch, EngagementProgress
from fixlink.review.models import Review
from fixlink.worker.models import WorkerProfile, WorkerServiceCategory

__all__ = [
    "CustomerProfile",
    "Engagement",
    "EngagementDispatch",
    "EngagementProgress",
    "Review",
    "WorkerProfile",
    "WorkerServiceCategory",
]
