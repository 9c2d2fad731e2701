"""
ticketflow Access Control

Can this developer hold this ticket?

Two gates, both must pass:
1. Expertise: the developer's area covers the ticket's area
2. Seniority: the ticket's priority is not above the developer's level

Used by the assignment workflow and re-checked by the escalation engine
after every priority bump.
"""

from typing import List

from ..models.ticket import Ticket, Priority, ExpertiseArea
from ..models.user import Developer, Seniority


class AccessError(Exception):
    """Raised when a developer may not hold a ticket."""
    pass


# Areas each developer area covers, beyond its own
EXPERTISE_COVERAGE = {
    ExpertiseArea.BACKEND: {ExpertiseArea.BACKEND, ExpertiseArea.DB},
    ExpertiseArea.FRONTEND: {ExpertiseArea.FRONTEND, ExpertiseArea.DESIGN},
    ExpertiseArea.DEVOPS: {ExpertiseArea.DEVOPS},
}

# Minimum seniority per priority; unlisted priorities accept anyone
SENIORITY_REQUIREMENTS = {
    Priority.CRITICAL: [Seniority.SENIOR],
    Priority.HIGH: [Seniority.MID, Seniority.SENIOR],
}


def expertise_matches(developer_area: ExpertiseArea, ticket_area: ExpertiseArea) -> bool:
    if developer_area == ExpertiseArea.FULLSTACK:
        return True
    covered = EXPERTISE_COVERAGE.get(developer_area, {developer_area})
    return ticket_area in covered


def seniority_allows(seniority: Seniority, priority: Priority) -> bool:
    allowed = SENIORITY_REQUIREMENTS.get(priority)
    return allowed is None or seniority in allowed


def can_assign(developer: Developer, ticket: Ticket) -> bool:
    if developer is None or ticket is None:
        return False
    return (
        expertise_matches(developer.expertise_area, ticket.expertise_area)
        and seniority_allows(developer.seniority, ticket.business_priority)
    )


def required_expertise(ticket_area: ExpertiseArea) -> List[str]:
    """Developer areas able to take a ticket of ticket_area, for error text."""
    areas = [
        area for area in ExpertiseArea
        if area != ExpertiseArea.FULLSTACK and expertise_matches(area, ticket_area)
    ]
    return sorted(area.value for area in areas) + [ExpertiseArea.FULLSTACK.value]


def required_seniority(priority: Priority) -> List[str]:
    allowed = SENIORITY_REQUIREMENTS.get(priority, list(Seniority))
    return [level.value for level in allowed]


class AccessGuard:
    """
    Raising flavour of can_assign(), for workflow entry points.
    """

    def require_access(self, developer: Developer, ticket: Ticket) -> None:
        if not expertise_matches(developer.expertise_area, ticket.expertise_area):
            raise AccessError(
                f"Developer {developer.username} cannot assign ticket {ticket.id} "
                f"due to expertise area. Required: {', '.join(required_expertise(ticket.expertise_area))}; "
                f"Current: {developer.expertise_area.value}."
            )

        if not seniority_allows(developer.seniority, ticket.business_priority):
            raise AccessError(
                f"Developer {developer.username} cannot assign ticket {ticket.id} "
                f"due to seniority level. Required: {', '.join(required_seniority(ticket.business_priority))}; "
                f"Current: {developer.seniority.value}."
            )
