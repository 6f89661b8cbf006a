"""
Pending change set and diff rules.

A PendingChangeSet stages grant and revoke intents for one staff member over
the currently selected partners. It is an immutable value: every operation
returns a new change set, computed from the PermissionScope (which partners are
selected and what each of them currently grants).

Status of a code c over n selected partners:
    granted_count(c)            partners in the selection that hold c today
    effective_granted_count(c)  n if c is pending grant, 0 if pending revoke,
                                granted_count(c) otherwise
    full / partial / none       effective count == n / in (0, n) / == 0

Toggling drops a staged intent before it looks at the actual state, so toggling the
same code twice always returns to where it started.
"""
import enum
from typing import Dict, FrozenSet, Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.features.permissions.schemas import PartnerPermissions


class PermissionStatus(str, enum.Enum):
    FULL = "full"
    PARTIAL = "partial"
    NONE = "none"


class PendingAction(str, enum.Enum):
    GRANT = "grant"
    REVOKE = "revoke"


class PermissionScope(BaseModel):
    """The selected partners of one staff member and the codes each currently holds."""
    model_config = ConfigDict(frozen=True)

    staff_id: int
    partner_ids: FrozenSet[int] = frozenset()
    granted: Dict[int, FrozenSet[str]] = Field(default_factory=dict)

    @classmethod
    def from_view(
        cls,
        staff_id: int,
        partner_ids: Iterable[int],
        view: Iterable[PartnerPermissions]
    ) -> "PermissionScope":
        partner_ids = frozenset(partner_ids)
        return cls(
            staff_id=staff_id,
            partner_ids=partner_ids,
            granted={
                entry.partner_id: entry.permission_codes
                for entry in view
                if entry.partner_id in partner_ids
            },
        )

    @property
    def partner_count(self) -> int:
        return len(self.partner_ids)

    def granted_count(self, code: str) -> int:
        return sum(1 for partner_id in self.partner_ids if code in self.granted.get(partner_id, ()))

    def is_fully_granted(self, code: str) -> bool:
        """Actual state: every selected partner already holds the code."""
        return self.partner_count > 0 and self.granted_count(code) == self.partner_count


class PendingChangeSet(BaseModel):
    """Staged grant and revoke intents; a code is never in both sets."""
    model_config = ConfigDict(frozen=True)

    grants: FrozenSet[str] = frozenset()
    revokes: FrozenSet[str] = frozenset()

    @model_validator(mode="after")
    def _disjoint(self) -> "PendingChangeSet":
        overlap = self.grants & self.revokes
        if overlap:
            raise ValueError(f"Codes staged for both grant and revoke: {sorted(overlap)}")
        return self

    @property
    def is_empty(self) -> bool:
        return not self.grants and not self.revokes

    def pending_action(self, code: str) -> Optional[PendingAction]:
        if code in self.grants:
            return PendingAction.GRANT
        if code in self.revokes:
            return PendingAction.REVOKE
        return None


def effective_granted_count(scope: PermissionScope, changes: PendingChangeSet, code: str) -> int:
    if code in changes.grants:
        return scope.partner_count
    if code in changes.revokes:
        return 0
    return scope.granted_count(code)


def permission_status(scope: PermissionScope, changes: PendingChangeSet, code: str) -> PermissionStatus:
    effective = effective_granted_count(scope, changes, code)
    if effective == 0:
        return PermissionStatus.NONE
    if effective == scope.partner_count:
        return PermissionStatus.FULL
    return PermissionStatus.PARTIAL


def fully_granted_count(scope: PermissionScope, changes: PendingChangeSet, codes: Iterable[str]) -> int:
    """How many of codes are effectively granted on every selected partner."""
    return sum(
        1 for code in codes
        if scope.partner_count and effective_granted_count(scope, changes, code) == scope.partner_count
    )


def toggle_permission(scope: PermissionScope, changes: PendingChangeSet, code: str) -> PendingChangeSet:
    """
    Flip the intent for one code.

    A staged intent is dropped. Otherwise a fully granted code stages a
    revoke and any other code stages a grant.
    """
    grants, revokes = set(changes.grants), set(changes.revokes)
    if code in revokes:
        revokes.discard(code)
    elif code in grants:
        grants.discard(code)
    elif scope.is_fully_granted(code):
        revokes.add(code)
    else:
        grants.add(code)
    return PendingChangeSet(grants=frozenset(grants), revokes=frozenset(revokes))


def select_all_in_group(scope: PermissionScope, changes: PendingChangeSet, codes: Iterable[str]) -> PendingChangeSet:
    """Stage a grant for every code not already held on every selected partner."""
    codes = list(codes)
    grants = set(changes.grants)
    grants.update(code for code in codes if not scope.is_fully_granted(code))
    revokes = set(changes.revokes).difference(codes)
    return PendingChangeSet(grants=frozenset(grants), revokes=frozenset(revokes))


def deselect_all_in_group(scope: PermissionScope, changes: PendingChangeSet, codes: Iterable[str]) -> PendingChangeSet:
    """Stage a revoke for every code held on at least one selected partner."""
    codes = list(codes)
    revokes = set(changes.revokes)
    revokes.update(code for code in codes if scope.granted_count(code) > 0)
    grants = set(changes.grants).difference(codes)
    return PendingChangeSet(grants=frozenset(grants), revokes=frozenset(revokes))


def reset() -> PendingChangeSet:
    return PendingChangeSet()
