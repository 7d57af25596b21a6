"""Team-project escrow and budget-allocation engine.

Services:
- ProjectService: project creation, edits, funding, status and launch
- MembershipService: invitations, answers and removals
- TaskService: tasks and their state machine
- PayoutService: escrowed payouts and idempotent release
- AutoRecruiter: skill-gated candidate scoring and invitations
- EscrowScheduler: release timers plus the durable release sweep
- InvitationExpirySweeper: periodic expiry of unanswered invitations

EscrowEngine wires all of them around one EngineContext.
"""

from teamescrow.engine.actors import Actor, ActorRole
from teamescrow.engine.budget import BudgetSummary, MemberEarnings
from teamescrow.engine.context import EngineContext
from teamescrow.engine.projects import ProjectDraft, ProjectPatch, TeamRole
from teamescrow.engine.service import EscrowEngine

__all__ = [
    "Actor",
    "ActorRole",
    "BudgetSummary",
    "MemberEarnings",
    "EngineContext",
    "EscrowEngine",
    "ProjectDraft",
    "ProjectPatch",
    "TeamRole",
]
