"""
Registry Schema — Pydantic models for every registry entity.

These models are the canonical in-process data structures. The SQLAlchemy
tables in `asset_registry.registry.models` persist them; the service layer
converts rows into these models before handing anything back to callers, so
no caller ever holds a live database row.

The one externally stable format is the mint audit record
(`MintRecord.to_audit_dict`), consumed by indexers and dashboards:

    {"tokenId", "to", "kind", "externalId1", "externalId2", "uri"}
"""

from __future__ import annotations

import enum
import hashlib
import json
from datetime import datetime, timezone
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from asset_registry.errors import ErrorCode, InvalidState


# ════════════════════════════════════════════════════════════════
# Host Constants
# ════════════════════════════════════════════════════════════════

UINT256_MAX = 2**256 - 1

# Receivers equal to this principal are rejected, as an address-based host
# rejects mints and transfers to the zero address.
ZERO_PRINCIPAL = "0x" + "0" * 40

GENESIS_HASH = "0" * 64  # "previous hash" of the first mint record

Uint256 = Annotated[int, Field(strict=True, ge=0, le=UINT256_MAX)]


# ════════════════════════════════════════════════════════════════
# Enumerations
# ════════════════════════════════════════════════════════════════


class Role(str, enum.Enum):
    """Named permission grants held by principals."""

    ADMINISTRATOR = "administrator"
    MINTER = "minter"


class NftKind(str, enum.Enum):
    """Use-case a token was minted for. Fixed at creation."""

    PROFILE = "profile"
    ACCESS_PASS = "access_pass"
    EVENT_TICKET = "event_ticket"
    BADGE = "badge"
    COLLECTIBLE = "collectible"


# ════════════════════════════════════════════════════════════════
# Principal Rules
# ════════════════════════════════════════════════════════════════


def validate_principal(principal: Any, field: str = "principal") -> str:
    """Check that a principal is a non-empty string and return it."""
    if not isinstance(principal, str) or not principal.strip():
        raise InvalidState(
            f"{field} must be a non-empty principal identifier, got {principal!r}",
            code=ErrorCode.INVALID_ARGUMENT,
        )
    return principal


def validate_receiver(principal: Any) -> str:
    """
    Check that a principal may receive a token.

    Receivers follow the host rule for addresses: non-empty and not the zero
    principal.
    """
    if not isinstance(principal, str) or not principal.strip():
        raise InvalidState(
            f"Receiver must be a non-empty principal identifier, got {principal!r}",
            code=ErrorCode.INVALID_RECEIVER,
        )
    if principal.lower() == ZERO_PRINCIPAL:
        raise InvalidState(
            "Receiver cannot be the zero principal",
            code=ErrorCode.INVALID_RECEIVER,
        )
    return principal


# ════════════════════════════════════════════════════════════════
# Token Models
# ════════════════════════════════════════════════════════════════


class NftMeta(BaseModel):
    """
    Typed, immutable payload describing a token's use-case.

    `external_id_1` and `external_id_2` are opaque to the registry; their
    meaning is fixed by `kind` (profile id, creator id + tier, event id +
    seat/tier, badge id, pack id + version). `0` means unused.
    """

    model_config = ConfigDict(frozen=True)

    kind: NftKind
    external_id_1: Uint256 = Field(description="Primary use-case reference")
    external_id_2: Uint256 = Field(
        default=0, description="Secondary use-case reference; 0 means unused"
    )


def make_metadata(kind: NftKind, external_id_1: Any, external_id_2: Any = 0) -> NftMeta:
    """Build an NftMeta, rejecting ids outside the uint256 range."""
    try:
        return NftMeta(kind=kind, external_id_1=external_id_1, external_id_2=external_id_2)
    except ValidationError as e:
        raise InvalidState(
            f"Invalid {kind.value} metadata: {e.errors()[0]['msg']}",
            code=ErrorCode.INVALID_ARGUMENT,
        ) from e


class Token(BaseModel):
    """A minted registry item. Only `owner` changes after creation."""

    model_config = ConfigDict(frozen=True)

    id: int = Field(gt=0, description="Sequentially assigned token id, starting at 1")
    owner: str
    uri: str
    metadata: NftMeta
    minted_at: datetime | None = None


class MintRecord(BaseModel):
    """
    Append-only audit record emitted on every successful mint.

    Field aliases are the stable external names; do not rename them.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    token_id: int = Field(alias="tokenId", gt=0)
    to: str
    kind: NftKind
    external_id_1: int = Field(alias="externalId1")
    external_id_2: int = Field(alias="externalId2")
    uri: str

    @classmethod
    def for_token(cls, token: Token) -> MintRecord:
        return cls(
            token_id=token.id,
            to=token.owner,
            kind=token.metadata.kind,
            external_id_1=token.metadata.external_id_1,
            external_id_2=token.metadata.external_id_2,
            uri=token.uri,
        )

    def to_audit_dict(self) -> dict[str, Any]:
        """Serialize to the external `{tokenId, to, kind, ...}` format."""
        return self.model_dump(by_alias=True, mode="json")

    def compute_hash(self, previous_hash: str) -> str:
        """
        Compute the SHA-256 chain hash of this record.

        Hash = SHA-256(previous_hash || canonical_json(audit_dict))
        """
        canonical = json.dumps(self.to_audit_dict(), sort_keys=True, default=str)
        return hashlib.sha256((previous_hash + canonical).encode("utf-8")).hexdigest()


class RoleChangeRecord(BaseModel):
    """A recorded grant or revocation of a role."""

    sequence_number: int
    role: Role
    principal: str
    enabled: bool
    changed_by: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
