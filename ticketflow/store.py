"""
ticketflow Entity Store

Plain in-memory context object owned by the driving loop.

The engine, services and reports all receive the same TicketStore by
reference; there is no module-level instance.
"""

from datetime import date
from typing import Dict, Iterable, Iterator, List, Optional, Set

from .models import Developer, Manager, Milestone, Ticket, User
from .utils import days_between, parse_day


class TicketStore:
    """
    Tickets by id, milestones by name (kept in creation order), users by
    username, plus the set of milestones seen blocked on the last tick.

    The tracker starts in its testing phase: reports are accepted, while
    assignment and milestone creation wait until the phase is over. The
    first report dates the phase; the daily tick ends it.
    """

    def __init__(self) -> None:
        self.users: Dict[str, User] = {}
        self.tickets: Dict[int, Ticket] = {}
        self.milestones: List[Milestone] = []
        self.blocked_milestones: Set[str] = set()
        self._ticket_counter = 0

        self.testing_phase = True
        self.testing_phase_start: Optional[str] = None

    # =========================================================================
    # Testing phase
    # =========================================================================

    def start_testing_phase(self, timestamp: str) -> None:
        """Date the phase from the first report; later calls are ignored."""
        if self.testing_phase_start is None:
            self.testing_phase_start = timestamp
            self.testing_phase = True

    def update_testing_phase(self, now: date, length_days: int) -> bool:
        """
        Close the phase once more than length_days (inclusive) have passed
        since it started. Returns True on the closing day only.
        """
        if not self.testing_phase:
            return False
        start = parse_day(self.testing_phase_start)
        if start is None:
            return False
        if days_between(start, now) + 1 > length_days:
            self.testing_phase = False
            return True
        return False

    # =========================================================================
    # Users
    # =========================================================================

    def load_users(self, users: Iterable[User]) -> None:
        for user in users:
            self.users[user.username] = user

    def get_user(self, username: Optional[str]) -> Optional[User]:
        if username is None:
            return None
        return self.users.get(username)

    def get_developer(self, username: Optional[str]) -> Optional[Developer]:
        user = self.get_user(username)
        return user if isinstance(user, Developer) else None

    def get_manager(self, username: Optional[str]) -> Optional[Manager]:
        user = self.get_user(username)
        return user if isinstance(user, Manager) else None

    # =========================================================================
    # Tickets
    # =========================================================================

    def next_ticket_id(self) -> int:
        ticket_id = self._ticket_counter
        self._ticket_counter += 1
        return ticket_id

    def add_ticket(self, ticket: Ticket) -> Ticket:
        self.tickets[ticket.id] = ticket
        self._ticket_counter = max(self._ticket_counter, ticket.id + 1)
        return ticket

    def get_ticket(self, ticket_id: int) -> Optional[Ticket]:
        return self.tickets.get(ticket_id)

    def tickets_of(self, milestone: Milestone) -> Iterator[Ticket]:
        """Tickets of a milestone, skipping ids the store does not know."""
        for ticket_id in milestone.tickets:
            ticket = self.tickets.get(ticket_id)
            if ticket is not None:
                yield ticket

    # =========================================================================
    # Milestones
    # =========================================================================

    def add_milestone(self, milestone: Milestone) -> Milestone:
        self.milestones.append(milestone)
        return milestone

    def find_milestone(self, name: str) -> Optional[Milestone]:
        for milestone in self.milestones:
            if milestone.name == name:
                return milestone
        return None

    def milestone_for_ticket(self, ticket_id: int) -> Optional[Milestone]:
        for milestone in self.milestones:
            if ticket_id in milestone.tickets:
                return milestone
        return None
