"""
ticketflow

Milestone-gated ticket tracking core:
- Temporal escalation engine (priority bumps, deadline, blocking)
- Scoring engine (risk, impact, efficiency, performance)
- Access control (expertise x seniority x priority)
"""

__version__ = "0.1.0"
