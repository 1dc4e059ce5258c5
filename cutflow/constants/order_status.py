from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Tuple


class OrderStatus(str, Enum):
    OPEN = "OPEN"
    APPLIED = "APPLIED"
    ASSIGNED = "ASSIGNED"
    IN_PROGRESS = "IN_PROGRESS"
    PREVIEW_SUBMITTED = "PREVIEW_SUBMITTED"
    REVISION_REQUESTED = "REVISION_REQUESTED"
    FINAL_SUBMITTED = "FINAL_SUBMITTED"
    PUBLISHED = "PUBLISHED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    DISPUTED = "DISPUTED"


class OrderAction(str, Enum):
    APPLY = "apply"
    REOPEN = "reopen"
    APPROVE_EDITOR = "approve_editor"
    START_WORK = "start_work"
    SUBMIT_PREVIEW = "submit_preview"
    APPROVE_PREVIEW = "approve_preview"
    REQUEST_REVISION = "request_revision"
    RESUME_WORK = "resume_work"
    SUBMIT_FINAL = "submit_final"
    PUBLISH = "publish"
    COMPLETE = "complete"
    CANCEL = "cancel"
    EXPIRE_UNSTARTED = "expire_unstarted"
    DISPUTE = "dispute"


class Effect(str, Enum):
    ASSIGN_EDITOR = "assign_editor"
    REJECT_OTHER_APPLICATIONS = "reject_other_applications"
    COUNT_REVISION = "count_revision"
    STAMP_PUBLISHED = "stamp_published"
    RELEASE_DEPOSITS = "release_deposits"
    FORFEIT_DEPOSIT = "forfeit_deposit"
    PAYOUT_EDITOR = "payout_editor"
    MARK_DISPUTE = "mark_dispute"
    CLEAR_DISPUTE = "clear_dispute"


CREATOR = "CREATOR"
EDITOR = "EDITOR"
ADMIN = "ADMIN"
# maintenance jobs act as SYSTEM
SYSTEM = "SYSTEM"

MAX_ACTIVE_JOBS = 2
MAX_REVISIONS = 2

ACTIVE_JOB_STATUSES = (
    OrderStatus.ASSIGNED,
    OrderStatus.IN_PROGRESS,
    OrderStatus.PREVIEW_SUBMITTED,
    OrderStatus.REVISION_REQUESTED,
)

# orders editors can browse and apply to
MARKETPLACE_STATUSES = (OrderStatus.OPEN, OrderStatus.APPLIED)

TERMINAL_STATUSES = (OrderStatus.COMPLETED, OrderStatus.CANCELLED)


@dataclass(frozen=True)
class Transition:
    to: OrderStatus
    roles: FrozenSet[str]
    effects: Tuple[Effect, ...] = ()


def _t(to, roles, *effects) -> Transition:
    return Transition(to=to, roles=frozenset(roles), effects=tuple(effects))


_RELEASE = Effect.RELEASE_DEPOSITS
_COMPLETE = (Effect.RELEASE_DEPOSITS, Effect.PAYOUT_EDITOR)

S = OrderStatus
A = OrderAction

TRANSITIONS: Dict[Tuple[OrderStatus, OrderAction], Transition] = {
    # applications
    (S.OPEN, A.APPLY): _t(S.APPLIED, {EDITOR}),
    (S.APPLIED, A.APPLY): _t(S.APPLIED, {EDITOR}),
    (S.APPLIED, A.REOPEN): _t(S.OPEN, {SYSTEM}),
    (S.OPEN, A.APPROVE_EDITOR): _t(
        S.ASSIGNED, {CREATOR, ADMIN}, Effect.ASSIGN_EDITOR, Effect.REJECT_OTHER_APPLICATIONS
    ),
    (S.APPLIED, A.APPROVE_EDITOR): _t(
        S.ASSIGNED, {CREATOR, ADMIN}, Effect.ASSIGN_EDITOR, Effect.REJECT_OTHER_APPLICATIONS
    ),

    # delivery
    (S.ASSIGNED, A.START_WORK): _t(S.IN_PROGRESS, {EDITOR}),
    (S.IN_PROGRESS, A.SUBMIT_PREVIEW): _t(S.PREVIEW_SUBMITTED, {EDITOR}),
    (S.REVISION_REQUESTED, A.SUBMIT_PREVIEW): _t(S.PREVIEW_SUBMITTED, {EDITOR, ADMIN}),
    (S.PREVIEW_SUBMITTED, A.APPROVE_PREVIEW): _t(S.IN_PROGRESS, {CREATOR, ADMIN}),
    (S.PREVIEW_SUBMITTED, A.REQUEST_REVISION): _t(
        S.REVISION_REQUESTED, {CREATOR, ADMIN}, Effect.COUNT_REVISION
    ),
    (S.REVISION_REQUESTED, A.RESUME_WORK): _t(S.IN_PROGRESS, {EDITOR, ADMIN}),
    (S.IN_PROGRESS, A.SUBMIT_FINAL): _t(S.FINAL_SUBMITTED, {EDITOR}),
    (S.FINAL_SUBMITTED, A.PUBLISH): _t(S.PUBLISHED, {CREATOR, ADMIN}, Effect.STAMP_PUBLISHED),

    # completion
    (S.FINAL_SUBMITTED, A.COMPLETE): _t(S.COMPLETED, {CREATOR, ADMIN}, *_COMPLETE),
    (S.PUBLISHED, A.COMPLETE): _t(S.COMPLETED, {CREATOR, ADMIN}, *_COMPLETE),
    (S.DISPUTED, A.COMPLETE): _t(S.COMPLETED, {ADMIN}, Effect.CLEAR_DISPUTE, *_COMPLETE),

    # cancellation
    (S.OPEN, A.CANCEL): _t(S.CANCELLED, {CREATOR, ADMIN, SYSTEM}, _RELEASE),
    (S.APPLIED, A.CANCEL): _t(S.CANCELLED, {CREATOR, ADMIN, SYSTEM}, _RELEASE),
    (S.ASSIGNED, A.CANCEL): _t(S.CANCELLED, {CREATOR, ADMIN, SYSTEM}, _RELEASE),
    (S.IN_PROGRESS, A.CANCEL): _t(S.CANCELLED, {CREATOR, ADMIN, SYSTEM}, _RELEASE),
    (S.PREVIEW_SUBMITTED, A.CANCEL): _t(S.CANCELLED, {ADMIN}, _RELEASE),
    (S.REVISION_REQUESTED, A.CANCEL): _t(S.CANCELLED, {ADMIN, SYSTEM}, _RELEASE),
    (S.FINAL_SUBMITTED, A.CANCEL): _t(S.CANCELLED, {ADMIN}, _RELEASE),
    (S.DISPUTED, A.CANCEL): _t(S.CANCELLED, {ADMIN}, Effect.CLEAR_DISPUTE, _RELEASE),
    (S.ASSIGNED, A.EXPIRE_UNSTARTED): _t(S.CANCELLED, {SYSTEM}, Effect.FORFEIT_DEPOSIT),

    # disputes
    (S.IN_PROGRESS, A.DISPUTE): _t(S.DISPUTED, {CREATOR, EDITOR, ADMIN}, Effect.MARK_DISPUTE),
    (S.PREVIEW_SUBMITTED, A.DISPUTE): _t(S.DISPUTED, {CREATOR, EDITOR, ADMIN}, Effect.MARK_DISPUTE),
    (S.REVISION_REQUESTED, A.DISPUTE): _t(S.DISPUTED, {CREATOR, EDITOR, ADMIN}, Effect.MARK_DISPUTE),
    (S.DISPUTED, A.RESUME_WORK): _t(S.IN_PROGRESS, {ADMIN}, Effect.CLEAR_DISPUTE),
}

del S, A


def find_transition(status: OrderStatus, action: OrderAction) -> Optional[Transition]:
    return TRANSITIONS.get((OrderStatus(status), OrderAction(action)))


def allowed_actions(status: OrderStatus, role: str) -> List[OrderAction]:
    """Actions the given role may take on an order in ``status``."""
    role = getattr(role, "value", role)
    return [
        action
        for (from_status, action), transition in TRANSITIONS.items()
        if from_status == status and role in transition.roles
    ]
