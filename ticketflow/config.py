"""
ticketflow Configuration

Escalation timings, scoring constants and the default policy.
"""

from typing import Dict
from pydantic import BaseModel, Field

from .models.user import Seniority


# =============================================================================
# Escalation timings
# =============================================================================
SYSTEM_ACTOR = "SYSTEM"

ESCALATION_INTERVAL_DAYS = 3  # One periodic bump earned per 3 days in a milestone
DEADLINE_LEAD_DAYS = 1        # Force CRITICAL this many days before due date
TESTING_PHASE_DAYS = 12       # Reporting window opened by the first report

# =============================================================================
# Scoring
# =============================================================================
RISK_QUALIFIERS = (
    (24.0, "NEGLIGIBLE"),
    (49.0, "MODERATE"),
    (74.0, "SIGNIFICANT"),
)
RISK_QUALIFIER_CEILING = "MAJOR"

# Average FEATURE_REQUEST / UI_FEEDBACK impact must stay below this for STABLE
STABILITY_IMPACT_THRESHOLD = 50.0

SENIORITY_BONUS: Dict[Seniority, float] = {
    Seniority.JUNIOR: 5.0,
    Seniority.MID: 15.0,
    Seniority.SENIOR: 30.0,
}


class EscalationPolicy(BaseModel):
    """
    Tunable knobs of the escalation engine.

    Defaults are the canonical policy; tests build variants through
    model_copy(update=...).
    """
    interval_days: int = Field(default=ESCALATION_INTERVAL_DAYS, ge=1)
    deadline_lead_days: int = Field(default=DEADLINE_LEAD_DAYS, ge=0)
    testing_phase_days: int = Field(default=TESTING_PHASE_DAYS, ge=1)
    system_actor: str = SYSTEM_ACTOR

    # Message templates sent to milestone developers
    deadline_message: str = (
        "Milestone {name} is due tomorrow. All unresolved tickets are now CRITICAL."
    )
    late_unblock_message: str = (
        "Milestone {name} was unblocked after due date. All active tickets are now CRITICAL."
    )
    unblock_message: str = "Milestone {name} is now unblocked. Blocked tickets were reopened."


def default_policy() -> EscalationPolicy:
    return EscalationPolicy()
