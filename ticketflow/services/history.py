"""
ticketflow History Service

Append-only audit trail per ticket.

The history is more than an activity feed:
- STATUS_CHANGED entries date resolutions and closures for scoring
- PRIORITY_ESCALATION entries count the periodic bumps already applied,
  which is what lets the escalation engine be re-run safely
"""

from datetime import date
from typing import Iterable, Optional

from ..config import SYSTEM_ACTOR
from ..models.ticket import (
    Ticket,
    TicketStatus,
    HistoryAction,
    HistoryEntry,
)
from ..utils import parse_day


class HistoryService:
    """
    Writes history entries.

    Entries are frozen; the only mutation ever applied to a ticket's
    history is an append.
    """

    def __init__(self, system_actor: str = SYSTEM_ACTOR):
        self.system_actor = system_actor

    def add_entry(
        self,
        ticket: Ticket,
        action: HistoryAction,
        by: str,
        timestamp: str,
        from_state: Optional[str] = None,
        to_state: Optional[str] = None,
        description: Optional[str] = None,
        milestone: Optional[str] = None
    ) -> HistoryEntry:
        """
        Append a generic entry to the ticket's history.
        """
        entry = HistoryEntry(
            action=action,
            by=by,
            timestamp=timestamp,
            from_state=from_state,
            to_state=to_state,
            description=description,
            milestone=milestone
        )
        return ticket.record(entry)

    def add_system_event(
        self,
        ticket: Ticket,
        action: HistoryAction,
        timestamp: str,
        description: Optional[str] = None,
        milestone: Optional[str] = None,
        to_state: Optional[str] = None
    ) -> HistoryEntry:
        """
        Entry attributed to the SYSTEM actor (escalations, auto-unassign).
        """
        return self.add_entry(
            ticket,
            action,
            by=self.system_actor,
            timestamp=timestamp,
            to_state=to_state,
            description=description,
            milestone=milestone
        )

    def add_status_change(
        self,
        ticket: Ticket,
        by: str,
        timestamp: str,
        old: TicketStatus,
        new: TicketStatus
    ) -> HistoryEntry:
        return self.add_entry(
            ticket,
            HistoryAction.STATUS_CHANGED,
            by=by,
            timestamp=timestamp,
            from_state=old.value,
            to_state=new.value
        )


# =============================================================================
# Queries
# =============================================================================

def last_transition_day(
    ticket: Ticket,
    states: Iterable[TicketStatus]
) -> Optional[date]:
    """
    Day of the most recent STATUS_CHANGED entry moving into one of states.
    """
    targets = {state.value for state in states}
    for entry in reversed(ticket.history):
        if entry.action == HistoryAction.STATUS_CHANGED and entry.to_state in targets:
            return parse_day(entry.timestamp)
    return None


def resolution_day(ticket: Ticket) -> Optional[date]:
    return last_transition_day(ticket, (TicketStatus.RESOLVED, TicketStatus.CLOSED))


def closing_day(ticket: Ticket) -> Optional[date]:
    return last_transition_day(ticket, (TicketStatus.CLOSED,))
