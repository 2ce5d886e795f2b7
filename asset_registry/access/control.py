"""
Access Controller — role membership and authorization for a deployed registry.

Two roles exist:

- ADMINISTRATOR: may grant and revoke Minter and Administrator
- MINTER: may call the Token Registry's mint entry points

Every privileged operation starts with an explicit authorization check that
returns an AuthorizationResult. `require_role` turns a non-authorized result
into an `Unauthorized` rejection before anything is written, so a failed check
never leaves partial state.

The Administrator role can never become empty: the constructor grants it to
the deploying principal, and revoking the last holder is rejected.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from asset_registry.errors import ErrorCode, InvalidState, Unauthorized
from asset_registry.registry.models import RegistryStateDB, RoleChangeDB, RoleMemberDB
from asset_registry.registry.schema import Role, RoleChangeRecord, validate_principal
from asset_registry.registry.store import RegistryStore

logger = logging.getLogger(__name__)


class AuthorizationDecision(str, Enum):
    """Result of a role check."""

    AUTHORIZED = "authorized"
    UNAUTHORIZED = "unauthorized"


@dataclass
class AuthorizationResult:
    """Result of checking a caller against a required role."""

    decision: AuthorizationDecision
    role: Role
    principal: str
    reason: str

    @property
    def is_allowed(self) -> bool:
        return self.decision == AuthorizationDecision.AUTHORIZED


class AccessController:
    """
    Role membership engine backed by the registry store.

    Methods that accept a `session` join the caller's open transaction, so a
    Token Registry mint can check the Minter role and write the token in one
    atomic step.
    """

    def __init__(self, store: RegistryStore) -> None:
        self.store = store

    # ── Construction ────────────────────────────────────────────

    def initialize(self, admin: str, session: Session | None = None) -> None:
        """
        Grant Administrator and Minter to the deploying principal.

        Called exactly once per store. A second call is rejected with
        InvalidState.
        """
        validate_principal(admin, "admin")
        with self.store.join(session) as s:
            if s.get(RegistryStateDB, 1) is not None:
                raise InvalidState(
                    "Registry store is already initialized",
                    code=ErrorCode.ALREADY_INITIALIZED,
                )
            s.add(RegistryStateDB(id=1, token_counter=0, deployed_by=admin))
            self._grant(s, Role.ADMINISTRATOR, admin, changed_by=admin)
            self._grant(s, Role.MINTER, admin, changed_by=admin)
        logger.info("Access controller initialized: admin=%s", admin)

    def is_initialized(self, session: Session | None = None) -> bool:
        with self.store.join(session) as s:
            return s.get(RegistryStateDB, 1) is not None

    # ── Queries ─────────────────────────────────────────────────

    def has_role(self, role: Role, principal: str, session: Session | None = None) -> bool:
        """Pure membership lookup. Never fails."""
        try:
            role = Role(role)
        except ValueError:
            return False
        if not isinstance(principal, str):
            return False
        with self.store.join(session) as s:
            return s.get(RoleMemberDB, (role.value, principal)) is not None

    def check_role(
        self,
        caller: str,
        role: Role,
        session: Session | None = None,
    ) -> AuthorizationResult:
        """
        Check whether `caller` holds `role`.

        Args:
            caller: Principal attempting the operation.
            role: Role the operation requires.

        Returns:
            AuthorizationResult with decision and reasoning.

        Raises:
            InvalidState: If `role` is not a known role.
        """
        try:
            role = Role(role)
        except ValueError as e:
            raise InvalidState(
                f"Unknown role: {role!r}", code=ErrorCode.INVALID_ARGUMENT
            ) from e
        if self.has_role(role, caller, session=session):
            return AuthorizationResult(
                decision=AuthorizationDecision.AUTHORIZED,
                role=role,
                principal=caller,
                reason=f"{caller} holds {role.value}",
            )
        return AuthorizationResult(
            decision=AuthorizationDecision.UNAUTHORIZED,
            role=role,
            principal=caller,
            reason=f"{caller} does not hold {role.value}",
        )

    def require_role(self, caller: str, role: Role, session: Session | None = None) -> None:
        """Guard for privileged operations; raises Unauthorized if `caller` lacks `role`."""
        result = self.check_role(caller, role, session=session)
        if not result.is_allowed:
            logger.warning("Authorization denied: %s", result.reason)
            raise Unauthorized(result.reason)

    def administrators(self) -> list[str]:
        """Return every Administrator, sorted."""
        with self.store.transaction() as s:
            return list(
                s.execute(
                    select(RoleMemberDB.principal)
                    .where(RoleMemberDB.role == Role.ADMINISTRATOR.value)
                    .order_by(RoleMemberDB.principal)
                ).scalars().all()
            )

    def role_history(self, limit: int = 100) -> list[RoleChangeRecord]:
        """Most recent role changes, newest first."""
        with self.store.transaction() as s:
            rows = s.execute(
                select(RoleChangeDB)
                .order_by(RoleChangeDB.sequence_number.desc())
                .limit(limit)
            ).scalars().all()
            return [
                RoleChangeRecord(
                    sequence_number=row.sequence_number,
                    role=Role(row.role),
                    principal=row.principal,
                    enabled=row.enabled,
                    changed_by=row.changed_by,
                    timestamp=row.timestamp,
                )
                for row in rows
            ]

    # ── Role Changes ────────────────────────────────────────────

    def set_minter(self, caller: str, target: str, enabled: bool) -> None:
        """
        Grant (enabled=True) or revoke (enabled=False) Minter on `target`.

        Restricted to Administrators. Idempotent: granting a held role or
        revoking an unheld one succeeds without recording a change.
        """
        with self.store.transaction() as s:
            self.require_role(caller, Role.ADMINISTRATOR, session=s)
            validate_principal(target, "target")
            self._set(s, Role.MINTER, target, enabled, changed_by=caller)

    def set_administrator(self, caller: str, target: str, enabled: bool) -> None:
        """
        Grant or revoke Administrator on `target`.

        Restricted to Administrators. Revoking the last Administrator is
        rejected with InvalidState, which keeps the role non-empty.
        """
        with self.store.transaction() as s:
            self.require_role(caller, Role.ADMINISTRATOR, session=s)
            validate_principal(target, "target")
            if not enabled and self.has_role(Role.ADMINISTRATOR, target, session=s):
                remaining = s.execute(
                    select(func.count())
                    .select_from(RoleMemberDB)
                    .where(RoleMemberDB.role == Role.ADMINISTRATOR.value)
                ).scalar() or 0
                if remaining <= 1:
                    raise InvalidState(
                        f"Cannot revoke the last Administrator ({target})",
                        code=ErrorCode.ADMIN_FLOOR,
                    )
            self._set(s, Role.ADMINISTRATOR, target, enabled, changed_by=caller)

    # ── Internal ────────────────────────────────────────────────

    def _set(self, session: Session, role: Role, target: str, enabled: bool, changed_by: str) -> None:
        if enabled:
            self._grant(session, role, target, changed_by)
        else:
            self._revoke(session, role, target, changed_by)

    def _grant(self, session: Session, role: Role, target: str, changed_by: str) -> None:
        if session.get(RoleMemberDB, (role.value, target)) is not None:
            return
        session.add(RoleMemberDB(role=role.value, principal=target, granted_by=changed_by))
        session.add(
            RoleChangeDB(role=role.value, principal=target, enabled=True, changed_by=changed_by)
        )
        logger.info("Role granted: role=%s principal=%s by=%s", role.value, target, changed_by)

    def _revoke(self, session: Session, role: Role, target: str, changed_by: str) -> None:
        if session.get(RoleMemberDB, (role.value, target)) is None:
            return
        session.execute(
            delete(RoleMemberDB).where(
                RoleMemberDB.role == role.value,
                RoleMemberDB.principal == target,
            )
        )
        session.add(
            RoleChangeDB(role=role.value, principal=target, enabled=False, changed_by=changed_by)
        )
        logger.info("Role revoked: role=%s principal=%s by=%s", role.value, target, changed_by)
