"""
ticketflow Search

Filtered views over tickets and developers.

Scope comes from who is asking:
- Managers search every ticket, and developers among their subordinates
- Developers search OPEN tickets of the milestones they work on
- Anyone else gets nothing

Tickets come back oldest first (created_at, then id), developers by username.
"""

from datetime import date
from typing import Optional, List
from pydantic import BaseModel, Field

from ..models.ticket import Ticket, TicketStatus, TicketType, Priority, ExpertiseArea
from ..models.user import Developer, Manager, Seniority, User
from ..store import TicketStore
from ..utils import parse_day
from .access import can_assign
from .milestones import is_milestone_blocked


class TicketFilters(BaseModel):
    """Every set filter must match. Dates are exclusive bounds."""
    business_priority: Optional[Priority] = None
    ticket_type: Optional[TicketType] = None
    created_after: Optional[date] = None
    created_before: Optional[date] = None
    keywords: List[str] = Field(default_factory=list)

    # Developers only: tickets they could take right now
    available_for_assignment: bool = False


class DeveloperFilters(BaseModel):
    expertise_area: Optional[ExpertiseArea] = None
    seniority: Optional[Seniority] = None
    performance_score_above: Optional[float] = None
    performance_score_below: Optional[float] = None


class TicketMatch(BaseModel):
    ticket: Ticket
    matching_words: List[str] = Field(default_factory=list)


def matching_words(ticket: Ticket, keywords: List[str]) -> List[str]:
    """Keywords found in title or description, case-insensitive, sorted."""
    text = f"{ticket.title} {ticket.description or ''}".lower()
    return sorted({word for word in keywords if word.lower() in text})


class SearchService:
    """
    Ticket and developer search.

    Developer search reads the performance score last written by the
    performance report.
    """

    def __init__(self, store: TicketStore):
        self.store = store

    def search_tickets(
        self,
        user: User,
        filters: Optional[TicketFilters] = None
    ) -> List[TicketMatch]:
        filters = filters or TicketFilters()
        matches = []
        for ticket in self._ticket_scope(user):
            if not self._ticket_matches(ticket, user, filters):
                continue
            words = matching_words(ticket, filters.keywords) if filters.keywords else []
            matches.append(TicketMatch(ticket=ticket, matching_words=words))
        return matches

    def search_developers(
        self,
        manager: Manager,
        filters: Optional[DeveloperFilters] = None
    ) -> List[Developer]:
        filters = filters or DeveloperFilters()
        developers = [
            developer for developer in
            (self.store.get_developer(name) for name in manager.subordinates)
            if developer is not None
        ]
        return sorted(
            (d for d in developers if self._developer_matches(d, filters)),
            key=lambda d: d.username
        )

    # =========================================================================
    # Private methods
    # =========================================================================

    def _ticket_scope(self, user: User) -> List[Ticket]:
        if isinstance(user, Manager):
            scope = list(self.store.tickets.values())
        elif isinstance(user, Developer):
            ids = set()
            for milestone in self.store.milestones:
                if user.username in milestone.assigned_devs:
                    ids.update(milestone.tickets)
            scope = [
                t for t in self.store.tickets.values()
                if t.id in ids and t.status == TicketStatus.OPEN
            ]
        else:
            scope = []
        return sorted(scope, key=lambda t: (t.created_at, t.id))

    def _ticket_matches(self, ticket: Ticket, user: User, filters: TicketFilters) -> bool:
        if filters.business_priority and ticket.business_priority != filters.business_priority:
            return False
        if filters.ticket_type and ticket.type != filters.ticket_type:
            return False

        if filters.created_after or filters.created_before:
            created = parse_day(ticket.created_at)
            if created is None:
                return False
            if filters.created_after and not created > filters.created_after:
                return False
            if filters.created_before and not created < filters.created_before:
                return False

        if filters.keywords and not matching_words(ticket, filters.keywords):
            return False

        if filters.available_for_assignment:
            return self._available_to(ticket, user)
        return True

    def _available_to(self, ticket: Ticket, user: User) -> bool:
        if not isinstance(user, Developer) or ticket.status != TicketStatus.OPEN:
            return False
        milestone = self.store.milestone_for_ticket(ticket.id)
        if milestone is None or is_milestone_blocked(self.store, milestone):
            return False
        return can_assign(user, ticket)

    def _developer_matches(self, developer: Developer, filters: DeveloperFilters) -> bool:
        if filters.expertise_area and developer.expertise_area != filters.expertise_area:
            return False
        if filters.seniority and developer.seniority != filters.seniority:
            return False
        if (
            filters.performance_score_above is not None
            and developer.performance_score <= filters.performance_score_above
        ):
            return False
        if (
            filters.performance_score_below is not None
            and developer.performance_score >= filters.performance_score_below
        ):
            return False
        return True
