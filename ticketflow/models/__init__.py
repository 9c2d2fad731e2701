"""
ticketflow Models

Tickets (tagged union), milestones, users
"""

from .ticket import (
    # Enums
    TicketType,
    TicketStatus,
    Priority,
    ExpertiseArea,
    Frequency,
    Severity,
    BusinessValue,
    CustomerDemand,
    HistoryAction,

    # Ticket details (tagged union members)
    BugDetails,
    FeatureRequestDetails,
    UIFeedbackDetails,
    TicketDetails,

    # Core models
    Ticket,
    HistoryEntry,
    Comment,
)
from .milestone import Milestone
from .user import Role, Seniority, User, Developer, Manager

__all__ = [
    "TicketType", "TicketStatus", "Priority", "ExpertiseArea", "Frequency",
    "Severity", "BusinessValue", "CustomerDemand", "HistoryAction",
    "BugDetails", "FeatureRequestDetails", "UIFeedbackDetails", "TicketDetails",
    "Ticket", "HistoryEntry", "Comment",
    "Milestone",
    "Role", "Seniority", "User", "Developer", "Manager",
]
