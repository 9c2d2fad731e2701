"""
ticketflow Escalation Engine

Time-driven milestone rules, evaluated once per incoming day.

Per milestone, in creation order:
  blocked edge   -> active tickets flip to BLOCKED
  unblocked edge -> BLOCKED tickets reopen; overdue milestones go CRITICAL
  not blocked    -> Rule A (periodic bump) + Rule B (deadline imminent)

Every priority bump is followed by an access re-check of the assignee.
The same tick also closes the testing phase once its window has passed.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Optional, List

from ..config import EscalationPolicy, default_policy
from ..models.milestone import Milestone
from ..models.ticket import (
    Ticket,
    TicketStatus,
    Priority,
    HistoryAction,
)
from ..store import TicketStore
from ..utils import DayLike, days_between, parse_day
from .access import can_assign
from .history import HistoryService
from .milestones import is_milestone_blocked
from .notifications import NotificationSink

logger = logging.getLogger(__name__)


@dataclass
class TickSummary:
    """What one advance() call changed."""
    day: Optional[date]
    blocked: List[str] = field(default_factory=list)
    unblocked: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    escalations: int = 0
    unassigned: int = 0
    notifications: int = 0
    testing_phase_ended: bool = False

    @property
    def changed(self) -> bool:
        return bool(
            self.blocked or self.unblocked or self.escalations
            or self.unassigned or self.notifications or self.testing_phase_ended
        )


class EscalationEngine:
    """
    Applies the escalation rules to the store for a given day.

    Rules:
    - Rule A: one bump per interval_days spent in the milestone
      (elapsed = days since creation + 1, earned = elapsed // interval)
    - Rule B: lead day before due date, force every active ticket CRITICAL
    - Late unblock: a milestone unblocked after its due date forces its
      remaining tickets CRITICAL

    Idempotent: the number of bumps a ticket already got is read back from
    its PRIORITY_ESCALATION history entries, and every other rule only fires
    for tickets that are not already in the target state. Re-running a day
    changes nothing.
    """

    def __init__(
        self,
        store: TicketStore,
        notifications: NotificationSink,
        policy: Optional[EscalationPolicy] = None,
        history: Optional[HistoryService] = None
    ):
        self.store = store
        self.notifications = notifications
        self.policy = policy or default_policy()
        self.history = history or HistoryService(self.policy.system_actor)

    def advance(self, today: DayLike) -> TickSummary:
        """
        Evaluate every milestone for today.

        An unreadable day is ignored; the next readable one catches up
        because escalation counts derive from elapsed time.
        """
        now = parse_day(today)
        summary = TickSummary(day=now)
        if now is None:
            logger.debug("Ignoring tick with unreadable date %r", today)
            return summary

        if self.store.update_testing_phase(now, self.policy.testing_phase_days):
            logger.info("Testing phase ended on %s", now.isoformat())
            summary.testing_phase_ended = True

        for milestone in list(self.store.milestones):
            self._evaluate(milestone, now, summary)

        if summary.changed:
            logger.debug("Tick %s: %s", now.isoformat(), summary)
        return summary

    def is_blocked(self, milestone: Milestone) -> bool:
        return is_milestone_blocked(self.store, milestone)

    # =========================================================================
    # Per-milestone evaluation
    # =========================================================================

    def _evaluate(self, milestone: Milestone, now: date, summary: TickSummary) -> None:
        created = parse_day(milestone.created_at)
        due = parse_day(milestone.due_date)
        if created is None or due is None:
            logger.debug("Skipping milestone %s: unreadable dates", milestone.name)
            summary.skipped.append(milestone.name)
            return

        stamp = now.isoformat()
        blocked = self.is_blocked(milestone)
        previously_blocked = milestone.name in self.store.blocked_milestones

        if blocked:
            if not previously_blocked:
                self.store.blocked_milestones.add(milestone.name)
                self._block(milestone, stamp)
                summary.blocked.append(milestone.name)
            return

        if previously_blocked:
            self.store.blocked_milestones.discard(milestone.name)
            self._unblock(milestone, now, due, stamp, summary)
            summary.unblocked.append(milestone.name)

        self._periodic_escalation(milestone, created, now, stamp, summary)
        self._deadline_escalation(milestone, due, now, stamp, summary)

    def _block(self, milestone: Milestone, stamp: str) -> None:
        logger.info("Milestone %s is blocked", milestone.name)
        for ticket in self.store.tickets_of(milestone):
            if not ticket.is_active:
                continue
            previous = ticket.status
            ticket.status = TicketStatus.BLOCKED
            self.history.add_system_event(
                ticket,
                HistoryAction.MILESTONE_BLOCKED,
                stamp,
                description=f"Milestone blocked; was {previous.value}",
                milestone=milestone.name,
                to_state=TicketStatus.BLOCKED.value
            )

    def _unblock(
        self,
        milestone: Milestone,
        now: date,
        due: date,
        stamp: str,
        summary: TickSummary
    ) -> None:
        logger.info("Milestone %s is unblocked", milestone.name)
        for ticket in self.store.tickets_of(milestone):
            if ticket.status != TicketStatus.BLOCKED:
                continue
            ticket.status = (
                TicketStatus.IN_PROGRESS if ticket.assigned_to else TicketStatus.OPEN
            )
            self.history.add_system_event(
                ticket,
                HistoryAction.MILESTONE_UNBLOCKED,
                stamp,
                description="Milestone unblocked",
                milestone=milestone.name,
                to_state=ticket.status.value
            )

        if now <= due:
            summary.notifications += self._notify_devs(
                milestone, self.policy.unblock_message
            )
            return

        escalated = 0
        for ticket in self.store.tickets_of(milestone):
            if ticket.is_settled or ticket.business_priority == Priority.CRITICAL:
                continue
            self._force_critical(
                ticket,
                HistoryAction.LATE_UNBLOCK_ESCALATION,
                stamp,
                milestone,
                "Escalated to CRITICAL - milestone unblocked after due date",
                summary
            )
            escalated += 1

        if escalated:
            summary.notifications += self._notify_devs(
                milestone, self.policy.late_unblock_message
            )

    # =========================================================================
    # Rules
    # =========================================================================

    def _periodic_escalation(
        self,
        milestone: Milestone,
        created: date,
        now: date,
        stamp: str,
        summary: TickSummary
    ) -> None:
        """Rule A: catch each active ticket up to the bumps it has earned."""
        elapsed = days_between(created, now) + 1
        earned = elapsed // self.policy.interval_days
        if earned <= 0:
            return

        for ticket in self.store.tickets_of(milestone):
            if not ticket.is_active:
                continue
            applied = ticket.count_actions(HistoryAction.PRIORITY_ESCALATION)
            while applied < earned and ticket.business_priority != Priority.CRITICAL:
                ticket.business_priority = ticket.business_priority.next()
                self.history.add_system_event(
                    ticket,
                    HistoryAction.PRIORITY_ESCALATION,
                    stamp,
                    description=(
                        f"Priority increased due to time in milestone "
                        f"'{milestone.name}' to {ticket.business_priority.value}"
                    ),
                    milestone=milestone.name,
                    to_state=ticket.business_priority.value
                )
                applied += 1
                summary.escalations += 1
                logger.info(
                    "Ticket %s escalated to %s (milestone %s)",
                    ticket.id, ticket.business_priority.value, milestone.name
                )
                if self._recheck_assignee(ticket, stamp):
                    summary.unassigned += 1

    def _deadline_escalation(
        self,
        milestone: Milestone,
        due: date,
        now: date,
        stamp: str,
        summary: TickSummary
    ) -> None:
        """Rule B: the day before the due date everything active goes CRITICAL."""
        if days_between(now, due) != self.policy.deadline_lead_days:
            return

        escalated = 0
        for ticket in self.store.tickets_of(milestone):
            if not ticket.is_active or ticket.business_priority == Priority.CRITICAL:
                continue
            self._force_critical(
                ticket,
                HistoryAction.DEADLINE_IMMINENT_ESCALATION,
                stamp,
                milestone,
                "Escalated to CRITICAL - 1 day before due date",
                summary
            )
            escalated += 1

        if escalated:
            summary.notifications += self._notify_devs(
                milestone, self.policy.deadline_message
            )

    # =========================================================================
    # Helpers
    # =========================================================================

    def _force_critical(
        self,
        ticket: Ticket,
        action: HistoryAction,
        stamp: str,
        milestone: Milestone,
        description: str,
        summary: TickSummary
    ) -> None:
        ticket.business_priority = Priority.CRITICAL
        self.history.add_system_event(
            ticket,
            action,
            stamp,
            description=description,
            milestone=milestone.name,
            to_state=Priority.CRITICAL.value
        )
        summary.escalations += 1
        logger.info("Ticket %s forced to CRITICAL (%s)", ticket.id, action.value)
        if self._recheck_assignee(ticket, stamp):
            summary.unassigned += 1

    def _recheck_assignee(self, ticket: Ticket, stamp: str) -> bool:
        """
        Revoke the assignment if the assignee can no longer hold the ticket.
        Returns True when the ticket was unassigned.
        """
        if ticket.assigned_to is None:
            return False
        developer = self.store.get_developer(ticket.assigned_to)
        if developer is None or can_assign(developer, ticket):
            return False

        former = ticket.assigned_to
        ticket.assigned_to = None
        ticket.assigned_at = None
        ticket.status = TicketStatus.OPEN
        self.history.add_system_event(
            ticket,
            HistoryAction.AUTO_UNASSIGN,
            stamp,
            description=(
                f"Ticket unassigned from {former}: priority "
                f"{ticket.business_priority.value} exceeds developer access"
            ),
            to_state=TicketStatus.OPEN.value
        )
        logger.info("Ticket %s auto-unassigned from %s", ticket.id, former)
        return True

    def _notify_devs(self, milestone: Milestone, template: str) -> int:
        recipients = [
            username for username in milestone.assigned_devs
            if self.store.get_user(username) is not None
        ]
        return self.notifications.notify_many(
            recipients, template.format(name=milestone.name)
        )
