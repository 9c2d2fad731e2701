"""
ticketflow Workflow Service

Developer-driven ticket lifecycle:

  OPEN --assign--> IN_PROGRESS --resolve--> RESOLVED --close--> CLOSED

Every step is undoable one level back. BLOCKED is never entered here;
only the escalation engine moves tickets in and out of it.
"""

import logging
from typing import Optional

from ..models.ticket import (
    Ticket,
    TicketDetails,
    TicketStatus,
    TicketType,
    Priority,
    ExpertiseArea,
    HistoryAction,
)
from ..models.user import Developer
from ..store import TicketStore
from .access import AccessError, AccessGuard
from .history import HistoryService
from .milestones import is_milestone_blocked

logger = logging.getLogger(__name__)


class WorkflowError(Exception):
    """Raised when a lifecycle step is not allowed."""
    pass


# Forward and backward steps driven by the assignee
NEXT_STATUS = {
    TicketStatus.IN_PROGRESS: TicketStatus.RESOLVED,
    TicketStatus.RESOLVED: TicketStatus.CLOSED,
}
PREVIOUS_STATUS = {
    TicketStatus.CLOSED: TicketStatus.RESOLVED,
    TicketStatus.RESOLVED: TicketStatus.IN_PROGRESS,
}


class WorkflowService:
    """
    Reporting, assignment and status transitions.

    Rules:
    1. Reports only during the testing phase; anonymous reports are BUG
       only and start at LOW
    2. Only OPEN tickets of an unblocked milestone can be assigned,
       and only to a developer of that milestone who passes access control
    3. Only the assignee moves a ticket forward or back
    """

    def __init__(
        self,
        store: TicketStore,
        history: Optional[HistoryService] = None,
        guard: Optional[AccessGuard] = None
    ):
        self.store = store
        self.history = history or HistoryService()
        self.guard = guard or AccessGuard()

    def report_ticket(
        self,
        details: TicketDetails,
        expertise_area: ExpertiseArea,
        created_at: str,
        title: str = "",
        description: Optional[str] = None,
        business_priority: Priority = Priority.LOW,
        reported_by: str = ""
    ) -> Ticket:
        """
        File a new OPEN ticket under the next sequential id.

        The first report opens the testing phase; once it is over no more
        reports are accepted.
        """
        self.store.start_testing_phase(created_at)
        if not self.store.testing_phase:
            raise WorkflowError("Tickets can only be reported during testing phases.")

        anonymous = not reported_by
        if anonymous and details.kind != TicketType.BUG.value:
            raise WorkflowError("Anonymous reports are only allowed for tickets of type BUG.")

        ticket = Ticket(
            id=self.store.next_ticket_id(),
            title=title,
            description=description,
            details=details,
            status=TicketStatus.OPEN,
            business_priority=Priority.LOW if anonymous else business_priority,
            expertise_area=expertise_area,
            reported_by=reported_by,
            created_at=created_at
        )
        self.store.add_ticket(ticket)
        logger.info("Ticket %s reported (%s)", ticket.id, ticket.type.value)
        return ticket

    def assign_ticket(self, ticket_id: int, username: str, timestamp: str) -> Ticket:
        """
        Developer takes an OPEN ticket. Ticket moves to IN_PROGRESS.
        """
        if self.store.testing_phase:
            raise WorkflowError("Tickets cannot be assigned during testing phases.")

        developer = self._require_developer(username)
        ticket = self._require_ticket(ticket_id)

        if ticket.status != TicketStatus.OPEN:
            raise WorkflowError("Only OPEN tickets can be assigned.")

        milestone = self.store.milestone_for_ticket(ticket_id)
        if milestone is None:
            raise WorkflowError(f"Ticket ID {ticket_id} is not assigned to any milestone.")
        if username not in milestone.assigned_devs:
            raise WorkflowError(
                f"Developer {username} is not assigned to milestone {milestone.name}."
            )
        if is_milestone_blocked(self.store, milestone):
            raise WorkflowError(
                f"Cannot assign ticket {ticket_id} from blocked milestone {milestone.name}."
            )

        try:
            self.guard.require_access(developer, ticket)
        except AccessError as exc:
            raise WorkflowError(str(exc)) from exc

        ticket.assigned_to = username
        ticket.assigned_at = timestamp
        self.history.add_entry(ticket, HistoryAction.ASSIGNED, by=username, timestamp=timestamp)
        self._move(ticket, TicketStatus.IN_PROGRESS, username, timestamp)
        logger.info("Ticket %s assigned to %s", ticket_id, username)
        return ticket

    def undo_assign(self, ticket_id: int, username: str, timestamp: str) -> Ticket:
        """
        Assignee hands the ticket back. Ticket returns to OPEN, unless its
        milestone holds it BLOCKED; the unblock then reopens it.
        """
        ticket = self._require_assignee(ticket_id, username)
        ticket.assigned_to = None
        ticket.assigned_at = None
        if ticket.status != TicketStatus.BLOCKED:
            ticket.status = TicketStatus.OPEN
        self.history.add_entry(ticket, HistoryAction.DE_ASSIGNED, by=username, timestamp=timestamp)
        return ticket

    def change_status(self, ticket_id: int, username: str, timestamp: str) -> Ticket:
        """
        IN_PROGRESS -> RESOLVED (stamps solved_at), RESOLVED -> CLOSED.
        Other states are left alone.
        """
        ticket = self._require_assignee(ticket_id, username)
        target = NEXT_STATUS.get(ticket.status)
        if target is None:
            return ticket

        if target == TicketStatus.RESOLVED:
            ticket.solved_at = timestamp
        self._move(ticket, target, username, timestamp)
        return ticket

    def undo_change_status(self, ticket_id: int, username: str, timestamp: str) -> Ticket:
        """
        CLOSED -> RESOLVED, RESOLVED -> IN_PROGRESS (clears solved_at).
        """
        ticket = self._require_assignee(ticket_id, username)
        target = PREVIOUS_STATUS.get(ticket.status)
        if target is None:
            return ticket

        if target == TicketStatus.IN_PROGRESS:
            ticket.solved_at = None
        self._move(ticket, target, username, timestamp)
        return ticket

    # =========================================================================
    # Private methods
    # =========================================================================

    def _move(self, ticket: Ticket, target: TicketStatus, by: str, timestamp: str) -> None:
        previous = ticket.status
        ticket.status = target
        self.history.add_status_change(ticket, by, timestamp, previous, target)

    def _require_ticket(self, ticket_id: int) -> Ticket:
        ticket = self.store.get_ticket(ticket_id)
        if ticket is None:
            raise WorkflowError(f"Ticket ID {ticket_id} does not exist.")
        return ticket

    def _require_developer(self, username: str) -> Developer:
        developer = self.store.get_developer(username)
        if developer is None:
            raise WorkflowError(f"User {username} is not a developer.")
        return developer

    def _require_assignee(self, ticket_id: int, username: str) -> Ticket:
        ticket = self._require_ticket(ticket_id)
        if ticket.assigned_to != username:
            raise WorkflowError(
                f"Ticket {ticket_id} is not assigned to developer {username}."
            )
        return ticket
