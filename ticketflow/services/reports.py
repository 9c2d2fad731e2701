"""
ticketflow Report Service

Read-only views over the store, built on the scoring engine:
- Ticket risk (OPEN / IN_PROGRESS)
- Customer impact (OPEN)
- Resolution efficiency (RESOLVED / CLOSED)
- App stability (OPEN / IN_PROGRESS)
- Developer performance (tickets closed last calendar month)

Scores are rounded to 2 decimals at this boundary, never earlier.
"""

import logging
from typing import Dict, Iterable, List
from pydantic import BaseModel, Field

from ..config import STABILITY_IMPACT_THRESHOLD
from ..models.ticket import Ticket, TicketStatus, TicketType, Priority
from ..store import TicketStore
from ..utils import parse_day, previous_month
from .history import closing_day
from .scoring import (
    average_efficiency,
    average_impact,
    average_risk,
    monthly_performance,
    risk_qualifier,
)

logger = logging.getLogger(__name__)


class ReportError(Exception):
    """Raised when a report cannot be produced."""
    pass


# =============================================================================
# MODELS
# =============================================================================

class TicketBreakdown(BaseModel):
    """Counts shared by every ticket report."""
    total_tickets: int
    tickets_by_type: Dict[TicketType, int]
    tickets_by_priority: Dict[Priority, int]


class RiskReport(TicketBreakdown):
    risk_by_type: Dict[TicketType, str]


class ImpactReport(TicketBreakdown):
    customer_impact_by_type: Dict[TicketType, float]


class EfficiencyReport(TicketBreakdown):
    efficiency_by_type: Dict[TicketType, float]


class StabilityReport(TicketBreakdown):
    risk_by_type: Dict[TicketType, str]
    impact_by_type: Dict[TicketType, float]
    app_stability: str  # STABLE | PARTIALLY_STABLE | UNSTABLE


class DeveloperPerformance(BaseModel):
    username: str
    closed_tickets: int
    average_resolution_time: float
    performance_score: float
    seniority: str


class PerformanceReport(BaseModel):
    manager: str
    period: str  # YYYY-MM
    report: List[DeveloperPerformance] = Field(default_factory=list)


def _round2(value: float) -> float:
    return round(value, 2)


class ReportService:
    """
    Builds reports from the current store snapshot.

    Only the performance report writes anything back: the rounded score
    is stored on each developer, as the latest known value.
    """

    def __init__(self, store: TicketStore):
        self.store = store

    def eligible(self, *statuses: TicketStatus) -> List[Ticket]:
        return [t for t in self.store.tickets.values() if t.status in statuses]

    def ticket_risk_report(self) -> RiskReport:
        tickets = self.eligible(TicketStatus.OPEN, TicketStatus.IN_PROGRESS)
        return RiskReport(
            **self._breakdown(tickets),
            risk_by_type=self._risk_by_type(tickets)
        )

    def customer_impact_report(self) -> ImpactReport:
        tickets = self.eligible(TicketStatus.OPEN)
        return ImpactReport(
            **self._breakdown(tickets),
            customer_impact_by_type=self._impact_by_type(tickets)
        )

    def resolution_efficiency_report(self) -> EfficiencyReport:
        tickets = self.eligible(TicketStatus.RESOLVED, TicketStatus.CLOSED)
        return EfficiencyReport(
            **self._breakdown(tickets),
            efficiency_by_type={
                kind: _round2(average_efficiency(tickets, kind)) for kind in TicketType
            }
        )

    def app_stability_report(self) -> StabilityReport:
        """
        UNSTABLE if any type carries SIGNIFICANT or MAJOR risk.
        STABLE if every type is NEGLIGIBLE and feature / UI impact stays
        below the threshold. PARTIALLY_STABLE otherwise.
        """
        tickets = self.eligible(TicketStatus.OPEN, TicketStatus.IN_PROGRESS)
        risks = self._risk_by_type(tickets)
        impacts = self._impact_by_type(tickets)

        if any(q in ("SIGNIFICANT", "MAJOR") for q in risks.values()):
            stability = "UNSTABLE"
        elif (
            all(q == "NEGLIGIBLE" for q in risks.values())
            and impacts[TicketType.FEATURE_REQUEST] < STABILITY_IMPACT_THRESHOLD
            and impacts[TicketType.UI_FEEDBACK] < STABILITY_IMPACT_THRESHOLD
        ):
            stability = "STABLE"
        else:
            stability = "PARTIALLY_STABLE"

        return StabilityReport(
            **self._breakdown(tickets),
            risk_by_type=risks,
            impact_by_type=impacts,
            app_stability=stability
        )

    def performance_report(self, manager_username: str, today) -> PerformanceReport:
        """
        Score each subordinate on tickets closed in the month before today.
        """
        manager = self.store.get_manager(manager_username)
        if manager is None:
            raise ReportError(f"Manager {manager_username} does not exist.")
        now = parse_day(today)
        if now is None:
            raise ReportError(f"Unreadable report date {today!r}.")

        year, month = previous_month(now)
        report = PerformanceReport(manager=manager.username, period=f"{year:04d}-{month:02d}")

        for username in sorted(manager.subordinates):
            developer = self.store.get_developer(username)
            if developer is None:
                logger.debug("Skipping unknown subordinate %s of %s", username, manager.username)
                continue

            closed = list(self._closed_in(username, year, month))
            breakdown = monthly_performance(developer.seniority, closed)
            developer.performance_score = _round2(breakdown.score)

            report.report.append(DeveloperPerformance(
                username=developer.username,
                closed_tickets=breakdown.closed,
                average_resolution_time=_round2(breakdown.average_resolution_days),
                performance_score=developer.performance_score,
                seniority=developer.seniority.value
            ))

        return report

    # =========================================================================
    # Private methods
    # =========================================================================

    def _closed_in(self, username: str, year: int, month: int) -> Iterable[Ticket]:
        for ticket in self.store.tickets.values():
            if ticket.assigned_to != username or ticket.status != TicketStatus.CLOSED:
                continue
            closed_on = closing_day(ticket)
            if closed_on is not None and (closed_on.year, closed_on.month) == (year, month):
                yield ticket

    def _breakdown(self, tickets: List[Ticket]) -> dict:
        return {
            "total_tickets": len(tickets),
            "tickets_by_type": {
                kind: sum(1 for t in tickets if t.type == kind) for kind in TicketType
            },
            "tickets_by_priority": {
                level: sum(1 for t in tickets if t.business_priority == level)
                for level in Priority
            },
        }

    def _risk_by_type(self, tickets: List[Ticket]) -> Dict[TicketType, str]:
        return {kind: risk_qualifier(average_risk(tickets, kind)) for kind in TicketType}

    def _impact_by_type(self, tickets: List[Ticket]) -> Dict[TicketType, float]:
        return {kind: _round2(average_impact(tickets, kind)) for kind in TicketType}
