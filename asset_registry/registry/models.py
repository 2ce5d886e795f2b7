"""
Registry Store — SQLAlchemy models for the shared persistent store.

Both components of a deployed registry write to these tables:

- Access Controller: `role_members`, `role_changes`
- Token Registry:    `registry_state`, `tokens`, `mint_records`

`mint_records` and `role_changes` are APPEND-ONLY. Token ids and unsigned
metadata references are uint256 on the wire, so the references are stored as
decimal text; token ids stay well inside a 64-bit integer column.
"""

from __future__ import annotations

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for all registry models."""
    pass


class RegistryStateDB(Base):
    """
    Singleton row holding the token counter and deployment marker.

    Its presence means the Access Controller has been initialized; the
    counter equals the number of tokens minted so far.
    """

    __tablename__ = "registry_state"

    id = Column(Integer, primary_key=True, default=1)
    token_counter = Column(
        Integer, nullable=False, default=0,
        comment="Number of tokens minted; next token id is counter + 1",
    )
    deployed_by = Column(
        String(255), nullable=False,
        comment="Principal passed at construction",
    )
    deployed_at = Column(DateTime(timezone=True), nullable=False, default=func.now())


class RoleMemberDB(Base):
    """(Role, Principal) membership. A row exists iff the role is held."""

    __tablename__ = "role_members"

    role = Column(String(20), primary_key=True)
    principal = Column(String(255), primary_key=True)
    granted_by = Column(String(255), nullable=True)
    granted_at = Column(DateTime(timezone=True), nullable=False, default=func.now())

    __table_args__ = (
        Index("ix_role_members_principal", "principal"),
    )


class RoleChangeDB(Base):
    """Append-only history of role grants and revocations."""

    __tablename__ = "role_changes"

    sequence_number = Column(Integer, primary_key=True, autoincrement=True)
    role = Column(String(20), nullable=False)
    principal = Column(String(255), nullable=False)
    enabled = Column(Boolean, nullable=False)
    changed_by = Column(String(255), nullable=False)
    timestamp = Column(DateTime(timezone=True), nullable=False, default=func.now())

    __table_args__ = (
        Index("ix_role_changes_principal", "principal"),
    )


class TokenDB(Base):
    """A minted token. Only `owner` is ever updated."""

    __tablename__ = "tokens"

    id = Column(Integer, primary_key=True, autoincrement=False)
    owner = Column(String(255), nullable=False)
    uri = Column(Text, nullable=False)
    kind = Column(String(20), nullable=False)
    external_id_1 = Column(String(78), nullable=False)
    external_id_2 = Column(String(78), nullable=False)
    minted_at = Column(DateTime(timezone=True), nullable=False, default=func.now())

    __table_args__ = (
        Index("ix_tokens_owner", "owner"),
    )

    def __repr__(self) -> str:
        return f"<Token id={self.id} kind={self.kind} owner={self.owner}>"


class MintRecordDB(Base):
    """
    Persisted mint audit record, hash-chained in token id order.

    record_hash = SHA-256(previous_hash || canonical_json(audit record)), so
    any retroactive alteration of a record is detectable.
    """

    __tablename__ = "mint_records"

    token_id = Column(Integer, ForeignKey("tokens.id"), primary_key=True, autoincrement=False)
    to_principal = Column(String(255), nullable=False)
    kind = Column(String(20), nullable=False)
    external_id_1 = Column(String(78), nullable=False)
    external_id_2 = Column(String(78), nullable=False)
    uri = Column(Text, nullable=False)
    previous_hash = Column(String(64), nullable=False)
    record_hash = Column(String(64), nullable=False, unique=True)
    recorded_at = Column(DateTime(timezone=True), nullable=False, default=func.now())

    def __repr__(self) -> str:
        return f"<MintRecord token={self.token_id} hash={self.record_hash[:12]}...>"
