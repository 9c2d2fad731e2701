"""
ticketflow Scoring Engine

Normalized ticket scores and developer performance.

Formula: score = min(100, base * 100 / max)

Each ticket kind brings its own base and max:

             Risk                     Impact                 Efficiency
  Bug        freq*sev / 12            freq*prio*sev / 48     (freq+sev)*10/days / 70
  Feature    value+demand / 20        value*demand / 100     (value+demand)/days / 20
  UI         (11-usab)*value / 100    value*usab / 100       (usab+value)/days / 20

All functions are pure: they read tickets, never mutate them.
"""

import math
from dataclasses import dataclass
from typing import Iterable, List, Optional

from ..config import (
    RISK_QUALIFIERS,
    RISK_QUALIFIER_CEILING,
    SENIORITY_BONUS,
)
from ..models.ticket import (
    Ticket,
    TicketType,
    Priority,
    BugDetails,
    FeatureRequestDetails,
    UIFeedbackDetails,
)
from ..models.user import Seniority
from ..utils import days_between, parse_day
from .history import resolution_day


def normalize(base: float, maximum: float) -> float:
    if maximum == 0:
        return 0.0
    return min(100.0, base * 100.0 / maximum)


def _unknown_kind(ticket: Ticket) -> TypeError:
    return TypeError(f"Ticket {ticket.id} has unsupported details {type(ticket.details).__name__}")


# =============================================================================
# Per-ticket scores
# =============================================================================

def risk_score(ticket: Ticket) -> float:
    details = ticket.details
    if isinstance(details, BugDetails):
        return normalize(details.frequency.weight * details.severity.weight, 12.0)
    if isinstance(details, FeatureRequestDetails):
        return normalize(details.business_value.weight + details.customer_demand.weight, 20.0)
    if isinstance(details, UIFeedbackDetails):
        return normalize((11 - details.usability_score) * details.business_value.weight, 100.0)
    raise _unknown_kind(ticket)


def impact_score(ticket: Ticket) -> float:
    """Customer impact; only the Bug formula depends on current priority."""
    details = ticket.details
    if isinstance(details, BugDetails):
        base = details.frequency.weight * ticket.business_priority.rank * details.severity.weight
        return normalize(base, 48.0)
    if isinstance(details, FeatureRequestDetails):
        return normalize(details.business_value.weight * details.customer_demand.weight, 100.0)
    if isinstance(details, UIFeedbackDetails):
        return normalize(details.business_value.weight * details.usability_score, 100.0)
    raise _unknown_kind(ticket)


def days_to_resolve(ticket: Ticket) -> int:
    """
    Inclusive days from assignment to the latest RESOLVED/CLOSED transition.
    0 when the ticket was never assigned or never resolved.
    """
    assigned = parse_day(ticket.assigned_at)
    resolved = resolution_day(ticket)
    if assigned is None or resolved is None:
        return 0
    return days_between(assigned, resolved) + 1


def efficiency_score(ticket: Ticket, days: Optional[int] = None) -> float:
    if days is None:
        days = days_to_resolve(ticket)
    if days <= 0:
        return 0.0

    details = ticket.details
    if isinstance(details, BugDetails):
        base = (details.frequency.weight + details.severity.weight) * 10.0 / days
        return normalize(base, 70.0)
    if isinstance(details, FeatureRequestDetails):
        base = (details.business_value.weight + details.customer_demand.weight) / days
        return normalize(base, 20.0)
    if isinstance(details, UIFeedbackDetails):
        base = (details.usability_score + details.business_value.weight) / days
        return normalize(base, 20.0)
    raise _unknown_kind(ticket)


# =============================================================================
# Aggregates
# =============================================================================

def _average(values: List[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def average_risk(tickets: Iterable[Ticket], ticket_type: TicketType) -> float:
    return _average([risk_score(t) for t in tickets if t.type == ticket_type])


def average_impact(tickets: Iterable[Ticket], ticket_type: TicketType) -> float:
    return _average([impact_score(t) for t in tickets if t.type == ticket_type])


def average_efficiency(tickets: Iterable[Ticket], ticket_type: TicketType) -> float:
    return _average([efficiency_score(t) for t in tickets if t.type == ticket_type])


def risk_qualifier(average: float) -> str:
    for ceiling, label in RISK_QUALIFIERS:
        if average <= ceiling:
            return label
    return RISK_QUALIFIER_CEILING


# =============================================================================
# Developer performance
# =============================================================================

@dataclass
class PerformanceBreakdown:
    """Inputs and result of one developer's monthly score."""
    closed: int
    high_priority: int
    average_resolution_days: float
    bugs: int
    features: int
    ui_feedback: int
    diversity: float
    score: float


def diversity_factor(bugs: int, features: int, ui_feedback: int) -> float:
    """Coefficient of variation of closed counts per ticket type."""
    counts = (bugs, features, ui_feedback)
    mean = sum(counts) / 3.0
    if mean == 0:
        return 0.0
    variance = sum((c - mean) ** 2 for c in counts) / 3.0
    return math.sqrt(variance) / mean


def performance_score(
    seniority: Seniority,
    closed: int,
    high_priority: int,
    average_resolution_days: float,
    bugs: int = 0,
    features: int = 0,
    ui_feedback: int = 0
) -> float:
    """
    JUNIOR  0.5*closed - diversity                    + 5
    MID     0.5*closed + 0.7*high - 0.3*avg_days      + 15
    SENIOR  0.5*closed + 1.0*high - 0.5*avg_days      + 30

    The formula part is floored at 0; nothing closed scores 0 outright.
    """
    if closed == 0:
        return 0.0

    bonus = SENIORITY_BONUS[seniority]
    if seniority == Seniority.JUNIOR:
        raw = 0.5 * closed - diversity_factor(bugs, features, ui_feedback)
    elif seniority == Seniority.MID:
        raw = 0.5 * closed + 0.7 * high_priority - 0.3 * average_resolution_days
    else:
        raw = 0.5 * closed + 1.0 * high_priority - 0.5 * average_resolution_days
    return max(0.0, raw) + bonus


def monthly_performance(
    seniority: Seniority,
    tickets: Iterable[Ticket]
) -> PerformanceBreakdown:
    """
    Score a developer over the tickets they closed in the scored month.

    Callers pick the tickets (see ReportService.performance_report).
    """
    closed_tickets = list(tickets)
    closed = len(closed_tickets)

    spans = []
    for ticket in closed_tickets:
        assigned = parse_day(ticket.assigned_at)
        solved = parse_day(ticket.solved_at)
        if assigned is not None and solved is not None:
            spans.append(days_between(assigned, solved) + 1)
    average_days = _average(spans)

    high = sum(
        1 for t in closed_tickets
        if t.business_priority in (Priority.HIGH, Priority.CRITICAL)
    )
    bugs = sum(1 for t in closed_tickets if t.type == TicketType.BUG)
    features = sum(1 for t in closed_tickets if t.type == TicketType.FEATURE_REQUEST)
    ui_feedback = sum(1 for t in closed_tickets if t.type == TicketType.UI_FEEDBACK)

    return PerformanceBreakdown(
        closed=closed,
        high_priority=high,
        average_resolution_days=average_days,
        bugs=bugs,
        features=features,
        ui_feedback=ui_feedback,
        diversity=diversity_factor(bugs, features, ui_feedback),
        score=performance_score(
            seniority, closed, high, average_days, bugs, features, ui_feedback
        )
    )
