"""Booking state machine: legal transitions, who may trigger them, and from where.

Engagement lifecycle:
    quote_requested -> quotes_sent                  (ancestry records only)
    pending -> accepted | cancelled (declined)
    accepted -> in_progress -> completed
    accepted -> completed
    pending | accepted -> cancelled
    accepted | in_progress -> disputed

completed, cancelled and disputed are terminal: no status-changing event
is accepted from them. Disputes are resolved outside this engine.

Pure computation: the table only validates. Persistence uses the resolved
rule's source status as the compare-and-set precondition.
"""

import enum
from dataclasses import dataclass

from fixlink.core.exceptions import AuthorizationError, ForbiddenTransitionError
from fixlink.core.schemas import IdentityContext
from fixlink.database.enums import UserRole
from fixlink.engagement.models import Engagement, EngagementStatus, PartyRole


class EngagementEvent(str, enum.Enum):
    FAN_OUT = "fan_out"
    ACCEPT = "accept"
    DECLINE = "decline"
    START = "start"
    COMPLETE = "complete"
    CANCEL = "cancel"
    DISPUTE = "dispute"


@dataclass(frozen=True)
class TransitionRule:
    event: EngagementEvent
    sources: frozenset[EngagementStatus]
    target: EngagementStatus
    actors: frozenset[UserRole]


def _rule(
    event: EngagementEvent,
    sources: set[EngagementStatus],
    target: EngagementStatus,
    actors: set[UserRole],
) -> TransitionRule:
    return TransitionRule(event, frozenset(sources), target, frozenset(actors))


S = EngagementStatus

_TRANSITIONS: dict[EngagementEvent, TransitionRule] = {
    EngagementEvent.FAN_OUT: _rule(
        EngagementEvent.FAN_OUT, {S.QUOTE_REQUESTED, S.QUOTES_SENT}, S.QUOTES_SENT, {UserRole.CUSTOMER}
    ),
    EngagementEvent.ACCEPT: _rule(EngagementEvent.ACCEPT, {S.PENDING}, S.ACCEPTED, {UserRole.WORKER}),
    EngagementEvent.DECLINE: _rule(
        EngagementEvent.DECLINE, {S.PENDING}, S.CANCELLED, {UserRole.WORKER}
    ),
    EngagementEvent.START: _rule(EngagementEvent.START, {S.ACCEPTED}, S.IN_PROGRESS, {UserRole.WORKER}),
    EngagementEvent.COMPLETE: _rule(
        EngagementEvent.COMPLETE,
        {S.ACCEPTED, S.IN_PROGRESS},
        S.COMPLETED,
        {UserRole.WORKER, UserRole.CUSTOMER},
    ),
    EngagementEvent.CANCEL: _rule(
        EngagementEvent.CANCEL,
        {S.PENDING, S.ACCEPTED},
        S.CANCELLED,
        {UserRole.CUSTOMER, UserRole.WORKER, UserRole.ADMIN},
    ),
    EngagementEvent.DISPUTE: _rule(
        EngagementEvent.DISPUTE,
        {S.ACCEPTED, S.IN_PROGRESS},
        S.DISPUTED,
        {UserRole.CUSTOMER, UserRole.WORKER},
    ),
}

TERMINAL_STATES = frozenset({S.COMPLETED, S.CANCELLED, S.DISPUTED})

PARTY_ROLES: dict[UserRole, PartyRole] = {
    UserRole.CUSTOMER: PartyRole.CUSTOMER,
    UserRole.WORKER: PartyRole.WORKER,
    UserRole.ADMIN: PartyRole.ADMIN,
}


class BookingStateMachine:
    """Validates engagement transitions for an actor."""

    @staticmethod
    def rule_for(event: EngagementEvent) -> TransitionRule:
        return _TRANSITIONS[event]

    @staticmethod
    def is_party(engagement: Engagement, identity: IdentityContext) -> bool:
        if identity.role == UserRole.CUSTOMER:
            return engagement.customer_id == identity.subject_id
        if identity.role == UserRole.WORKER:
            return engagement.worker_id is not None and engagement.worker_id == identity.subject_id
        return False

    @staticmethod
    def authorize(
        engagement: Engagement, event: EngagementEvent, identity: IdentityContext
    ) -> TransitionRule:
        """
        Resolve the rule for `event` on `engagement` as `identity`.

        Raises AuthorizationError when the role may not trigger the event or
        the actor is not the record's party (admins act on any record), and
        ForbiddenTransitionError when the event is illegal from the current status.
        """
        rule = _TRANSITIONS[event]
        if identity.role not in rule.actors:
            raise AuthorizationError(
                f"Role {identity.role.value} cannot {event.value} an engagement"
            )
        if identity.role != UserRole.ADMIN and not BookingStateMachine.is_party(engagement, identity):
            raise AuthorizationError("You are not a party to this engagement")
        if engagement.status not in rule.sources:
            allowed = ", ".join(e.value for e in BookingStateMachine.valid_events(engagement.status))
            raise ForbiddenTransitionError(
                f"Cannot {event.value} an engagement in status {engagement.status.value}. "
                f"Allowed events: [{allowed}]"
            )
        return rule

    @staticmethod
    def is_terminal(status: EngagementStatus) -> bool:
        return status in TERMINAL_STATES

    @staticmethod
    def valid_events(status: EngagementStatus) -> list[EngagementEvent]:
        return [event for event, rule in _TRANSITIONS.items() if status in rule.sources]
