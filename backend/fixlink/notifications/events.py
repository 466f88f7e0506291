"""
notifications/events.py

Event types published to the notification gateway.
"""

from enum import Enum


class NotificationEvent(str, Enum):
    QUOTE_REQUEST_RECEIVED = "quote_request.received"
    BOOKING_REQUESTED = "booking.requested"
    ENGAGEMENT_ACCEPTED = "engagement.accepted"
    ENGAGEMENT_DECLINED = "engagement.declined"
    ENGAGEMENT_STARTED = "engagement.started"
    ENGAGEMENT_PROGRESS = "engagement.progress"
    ENGAGEMENT_COMPLETED = "engagement.completed"
    ENGAGEMENT_CANCELLED = "engagement.cancelled"
    ENGAGEMENT_DISPUTED = "engagement.disputed"
    QUOTE_ACCEPTED = "quote.accepted"
    QUOTE_DECLINED = "quote.declined"
    REVIEW_RECEIVED = "review.received"
