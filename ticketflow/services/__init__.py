"""
ticketflow Services

Escalation engine, scoring engine, access control and the supporting
workflow / milestone / report services.
"""

from .access import AccessGuard, AccessError, can_assign
from .history import HistoryService
from .notifications import NotificationSink, MailboxSink
from .milestones import MilestoneService, MilestoneError, MilestoneProgress, is_milestone_blocked
from .escalation import EscalationEngine, TickSummary
from .workflow import WorkflowService, WorkflowError
from .reports import ReportService, ReportError
from .search import SearchService, TicketFilters, DeveloperFilters, TicketMatch
from . import scoring

__all__ = [
    # Access control
    "AccessGuard", "AccessError", "can_assign",

    # History (append-only audit trail)
    "HistoryService",

    # Notifications
    "NotificationSink", "MailboxSink",

    # Milestones
    "MilestoneService", "MilestoneError", "MilestoneProgress", "is_milestone_blocked",

    # Escalation engine
    "EscalationEngine", "TickSummary",

    # Ticket lifecycle
    "WorkflowService", "WorkflowError",

    # Scoring + reports
    "scoring", "ReportService", "ReportError",

    # Search
    "SearchService", "TicketFilters", "DeveloperFilters", "TicketMatch",
]
