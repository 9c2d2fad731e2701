"""
ticketflow Milestone Service

Milestones gate tickets behind due dates and dependencies.

Creation wires the dependency graph once:
  A.blocking_for = [B]  =>  B.depends_on contains A

From then on a milestone is blocked while any milestone it depends on
still has a ticket that is not CLOSED. That predicate is recomputed on
demand, never cached.
"""

import logging
from datetime import date
from typing import Optional, List
from pydantic import BaseModel, Field

from ..models.milestone import Milestone
from ..models.ticket import HistoryAction, TicketStatus
from ..models.user import Developer, Manager, User
from ..store import TicketStore
from ..utils import days_between, parse_day
from .history import HistoryService
from .notifications import NotificationSink

logger = logging.getLogger(__name__)


class MilestoneError(Exception):
    """Raised when a milestone cannot be created."""
    pass


class DeveloperRepartition(BaseModel):
    developer: str
    assigned_tickets: List[int] = Field(default_factory=list)


class MilestoneProgress(BaseModel):
    """Snapshot of a milestone as seen on a given day."""
    name: str
    status: str  # ACTIVE | COMPLETED
    is_blocked: bool
    due_date: str

    days_until_due: int
    overdue_by: int

    open_tickets: List[int] = Field(default_factory=list)
    closed_tickets: List[int] = Field(default_factory=list)
    completion_percentage: float = 0.0

    repartition: List[DeveloperRepartition] = Field(default_factory=list)


def is_milestone_blocked(store: TicketStore, milestone: Milestone) -> bool:
    """
    True while any dependency still holds a ticket that is not CLOSED.

    Unknown dependency names and unknown ticket ids do not block.
    """
    if milestone is None:
        return False
    for name in milestone.depends_on:
        dependency = store.find_milestone(name)
        if dependency is None:
            continue
        for ticket in store.tickets_of(dependency):
            if ticket.status != TicketStatus.CLOSED:
                return True
    return False


class MilestoneService:
    """
    Creates milestones and reports on them.

    Rules:
    1. No milestones during the testing phase; names are unique
    2. A ticket belongs to at most one milestone
    3. depends_on is fixed once both ends of an edge exist
    """

    def __init__(
        self,
        store: TicketStore,
        notifications: NotificationSink,
        history: Optional[HistoryService] = None
    ):
        self.store = store
        self.notifications = notifications
        self.history = history or HistoryService()

    def create_milestone(
        self,
        name: str,
        due_date: str,
        created_at: str,
        created_by: str,
        tickets: Optional[List[int]] = None,
        assigned_devs: Optional[List[str]] = None,
        blocking_for: Optional[List[str]] = None
    ) -> Milestone:
        """
        Register a milestone and announce it to its developers.
        """
        if self.store.testing_phase:
            raise MilestoneError("Milestones cannot be created during testing phases.")

        if self.store.find_milestone(name) is not None:
            raise MilestoneError(f"Milestone {name} already exists.")

        ticket_ids = list(tickets or [])
        for ticket_id in ticket_ids:
            if self.store.get_ticket(ticket_id) is None:
                raise MilestoneError(f"Ticket ID {ticket_id} does not exist.")
            owner = self.store.milestone_for_ticket(ticket_id)
            if owner is not None:
                raise MilestoneError(
                    f"Tickets {ticket_id} already assigned to milestone {owner.name}."
                )

        milestone = Milestone(
            name=name,
            due_date=due_date,
            created_at=created_at,
            created_by=created_by,
            tickets=ticket_ids,
            assigned_devs=list(assigned_devs or []),
            blocking_for=list(blocking_for or [])
        )

        # Edges in both directions
        for existing in self.store.milestones:
            if name in existing.blocking_for:
                milestone.add_dependency(existing.name)
        for blocked_name in milestone.blocking_for:
            blocked = self.store.find_milestone(blocked_name)
            if blocked is not None:
                blocked.add_dependency(name)

        for ticket in self.store.tickets_of(milestone):
            self.history.add_entry(
                ticket,
                HistoryAction.ADDED_TO_MILESTONE,
                by=created_by,
                timestamp=created_at,
                milestone=name
            )

        self.store.add_milestone(milestone)
        logger.info(
            "Milestone %s created by %s (due %s, %d tickets)",
            name, created_by, due_date, len(ticket_ids)
        )

        self.notifications.notify_many(
            self._known_users(milestone.assigned_devs),
            f"New milestone {name} has been created with due date {due_date}."
        )
        return milestone

    def is_blocked(self, milestone: Milestone) -> bool:
        return is_milestone_blocked(self.store, milestone)

    def visible_to(self, user: User) -> List[Milestone]:
        """
        Managers see what they created, developers what they work on.
        Sorted by due date, then name.
        """
        if isinstance(user, Manager):
            visible = [m for m in self.store.milestones if m.created_by == user.username]
        elif isinstance(user, Developer):
            visible = [m for m in self.store.milestones if user.username in m.assigned_devs]
        else:
            visible = []
        return sorted(visible, key=lambda m: (m.due_date, m.name))

    def progress(self, milestone: Milestone, today) -> MilestoneProgress:
        """
        Completion and deadline figures for one milestone.

        A completed milestone is measured from its latest solved_at rather
        than from today. Both counters are inclusive of the due day.
        """
        now = parse_day(today)
        due = parse_day(milestone.due_date)
        if now is None or due is None:
            raise MilestoneError(f"Milestone {milestone.name} has an unreadable date.")

        open_ids: List[int] = []
        closed_ids: List[int] = []
        last_solved: Optional[date] = None

        for ticket in self.store.tickets_of(milestone):
            if ticket.status != TicketStatus.CLOSED:
                open_ids.append(ticket.id)
                continue
            closed_ids.append(ticket.id)
            solved = parse_day(ticket.solved_at)
            if solved is not None and (last_solved is None or solved > last_solved):
                last_solved = solved

        total = len(open_ids) + len(closed_ids)
        completed = total > 0 and not open_ids

        reference = last_solved if completed and last_solved is not None else now
        remaining = days_between(reference, due)
        if reference > due:
            days_until_due, overdue_by = 0, abs(remaining) + 1
        else:
            days_until_due, overdue_by = remaining + 1, 0

        repartition = [
            DeveloperRepartition(
                developer=dev,
                assigned_tickets=[
                    t.id for t in self.store.tickets_of(milestone) if t.assigned_to == dev
                ]
            )
            for dev in milestone.assigned_devs
        ]

        return MilestoneProgress(
            name=milestone.name,
            status="COMPLETED" if completed else "ACTIVE",
            is_blocked=self.is_blocked(milestone),
            due_date=milestone.due_date,
            days_until_due=days_until_due,
            overdue_by=overdue_by,
            open_tickets=open_ids,
            closed_tickets=closed_ids,
            completion_percentage=round(len(closed_ids) / total, 2) if total else 0.0,
            repartition=repartition
        )

    def _known_users(self, usernames: List[str]) -> List[str]:
        return [name for name in usernames if self.store.get_user(name) is not None]
