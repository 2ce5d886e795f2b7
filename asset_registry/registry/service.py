"""
Token Registry Service — allocation, ownership and metadata of minted tokens.

This service provides the core operations of the registry:
- Five typed mint entry points, each gated on the Minter role
- Point lookups of owner, URI and metadata by token id
- Owner-initiated ownership transfer
- A hash-chained, append-only log of every mint, with verification

A mint is one serialized transaction: role check, counter increment, token
row, mint record. Any rejection rolls the whole transaction back, so the
counter only advances when a token was actually created. Sinks are notified
after the commit, exactly once per successful mint.

Usage:
    store = RegistryStore.in_memory()
    access = AccessController(store)
    access.initialize(admin="0xA")
    tokens = TokenRegistry(store, access)

    token_id = tokens.mint_profile("0xA", to="0xU", uri="ipfs://p", profile_id=42)
"""

from __future__ import annotations

import logging
from typing import Any, Iterable

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from asset_registry.access.control import AccessController
from asset_registry.errors import ErrorCode, InvalidState, Unauthorized
from asset_registry.registry.models import MintRecordDB, RegistryStateDB, TokenDB
from asset_registry.registry.schema import (
    GENESIS_HASH,
    MintRecord,
    NftKind,
    NftMeta,
    Role,
    Token,
    make_metadata,
    validate_receiver,
)
from asset_registry.registry.sinks import MintRecordSink
from asset_registry.registry.store import RegistryStore

logger = logging.getLogger(__name__)


class TokenRegistry:
    """Allocates token ids and binds owner, URI and metadata to them."""

    def __init__(
        self,
        store: RegistryStore,
        access: AccessController,
        sinks: Iterable[MintRecordSink] = (),
    ) -> None:
        self.store = store
        self.access = access
        self.sinks: list[MintRecordSink] = list(sinks)

    def add_sink(self, sink: MintRecordSink) -> None:
        self.sinks.append(sink)

    # ── Mint Entry Points ───────────────────────────────────────

    def mint_profile(self, caller: str, to: str, uri: str, profile_id: int) -> int:
        return self._mint(caller, to, uri, NftKind.PROFILE, profile_id, 0)

    def mint_access_pass(self, caller: str, to: str, uri: str, creator_id: int, tier: int) -> int:
        return self._mint(caller, to, uri, NftKind.ACCESS_PASS, creator_id, tier)

    def mint_event_ticket(
        self, caller: str, to: str, uri: str, event_id: int, seat_or_tier: int
    ) -> int:
        return self._mint(caller, to, uri, NftKind.EVENT_TICKET, event_id, seat_or_tier)

    def mint_badge(self, caller: str, to: str, uri: str, badge_id: int) -> int:
        return self._mint(caller, to, uri, NftKind.BADGE, badge_id, 0)

    def mint_collectible(
        self, caller: str, to: str, uri: str, pack_id: int, version: int
    ) -> int:
        return self._mint(caller, to, uri, NftKind.COLLECTIBLE, pack_id, version)

    def _mint(
        self,
        caller: str,
        to: str,
        uri: str,
        kind: NftKind,
        external_id_1: Any,
        external_id_2: Any,
    ) -> int:
        """
        Mint one token.

        Raises:
            Unauthorized: If `caller` does not hold Minter.
            InvalidState: If the receiver, URI or ids are rejected.
        """
        with self.store.transaction() as session:
            self.access.require_role(caller, Role.MINTER, session=session)
            validate_receiver(to)
            if not isinstance(uri, str):
                raise InvalidState(
                    f"URI must be a string, got {type(uri).__name__}",
                    code=ErrorCode.INVALID_ARGUMENT,
                )
            metadata = make_metadata(kind, external_id_1, external_id_2)

            state = self._state(session)
            token_id = state.token_counter + 1
            state.token_counter = token_id

            session.add(
                TokenDB(
                    id=token_id,
                    owner=to,
                    uri=uri,
                    kind=metadata.kind.value,
                    external_id_1=str(metadata.external_id_1),
                    external_id_2=str(metadata.external_id_2),
                )
            )
            record = MintRecord(
                token_id=token_id,
                to=to,
                kind=metadata.kind,
                external_id_1=metadata.external_id_1,
                external_id_2=metadata.external_id_2,
                uri=uri,
            )
            self._append_record(session, record)

        logger.info(
            "Token minted: id=%d kind=%s to=%s by=%s", token_id, kind.value, to, caller
        )
        self._emit(record)
        return token_id

    # ── Ownership Transfer ──────────────────────────────────────

    def transfer(self, caller: str, from_: str, to: str, token_id: int) -> None:
        """
        Move `token_id` from its current owner to `to`.

        Only the current owner may transfer. Nothing but the owner changes.

        Raises:
            Unauthorized: If `caller` is not the current owner.
            InvalidState: If the token is unknown, `from_` is not the owner,
                or `to` is not a valid receiver.
        """
        with self.store.transaction() as session:
            row = self._token_row(session, token_id)
            if caller != row.owner:
                raise Unauthorized(
                    f"{caller} is not the owner of token {token_id}",
                    code=ErrorCode.NOT_OWNER,
                )
            if from_ != row.owner:
                raise InvalidState(
                    f"Token {token_id} is not owned by {from_}",
                    code=ErrorCode.NOT_OWNER,
                )
            validate_receiver(to)
            row.owner = to
        logger.info("Token transferred: id=%d from=%s to=%s", token_id, from_, to)

    # ── Queries ─────────────────────────────────────────────────

    def get_token(self, token_id: int) -> Token:
        """Full token by id. Raises InvalidState for ids never minted."""
        with self.store.transaction() as session:
            return self._to_token(self._token_row(session, token_id))

    def owner_of(self, token_id: int) -> str:
        return self.get_token(token_id).owner

    def token_uri(self, token_id: int) -> str:
        return self.get_token(token_id).uri

    def get_metadata(self, token_id: int) -> NftMeta:
        return self.get_token(token_id).metadata

    def balance_of(self, owner: str) -> int:
        """Number of tokens currently held by `owner`."""
        with self.store.transaction() as session:
            return session.execute(
                select(func.count()).select_from(TokenDB).where(TokenDB.owner == owner)
            ).scalar() or 0

    def total_minted(self) -> int:
        """Current value of the token counter."""
        with self.store.transaction() as session:
            return self._state(session).token_counter

    def next_token_id(self) -> int:
        return self.total_minted() + 1

    # ── Mint Log ────────────────────────────────────────────────

    def get_mint_record(self, token_id: int) -> MintRecord | None:
        with self.store.transaction() as session:
            row = session.get(MintRecordDB, token_id)
            return self._to_record(row) if row is not None else None

    def get_mint_records(self, limit: int = 100, offset: int = 0) -> list[MintRecord]:
        """Mint records in token id order."""
        with self.store.transaction() as session:
            rows = session.execute(
                select(MintRecordDB)
                .order_by(MintRecordDB.token_id.asc())
                .limit(limit)
                .offset(offset)
            ).scalars().all()
            return [self._to_record(row) for row in rows]

    def verify_mint_log(self) -> tuple[bool, int, str]:
        """
        Verify the integrity of the mint log.

        Walks every record in token id order, recomputing each hash and
        checking both the stored hash and the link to the previous record.

        Returns:
            Tuple of (is_valid, records_verified, message).
        """
        with self.store.transaction() as session:
            rows = session.execute(
                select(MintRecordDB).order_by(MintRecordDB.token_id.asc())
            ).scalars().all()
            counter = self._state(session).token_counter

            previous_hash = GENESIS_HASH
            for i, row in enumerate(rows):
                if row.token_id != i + 1:
                    return (
                        False, i,
                        f"Gap in mint log: expected token {i + 1}, found {row.token_id}",
                    )
                if row.previous_hash != previous_hash:
                    return (
                        False, i,
                        f"Chain break at token {row.token_id}: "
                        f"previous_hash does not match prior record's hash",
                    )
                expected_hash = self._to_record(row).compute_hash(previous_hash)
                if row.record_hash != expected_hash:
                    return (
                        False, i,
                        f"Hash mismatch at token {row.token_id}: "
                        f"stored={row.record_hash[:16]}... "
                        f"computed={expected_hash[:16]}...",
                    )
                previous_hash = row.record_hash

            if len(rows) != counter:
                return (
                    False, len(rows),
                    f"Mint log has {len(rows)} records but counter is {counter}",
                )

            return (
                True, len(rows),
                f"Mint log verified: {len(rows)} records, integrity intact",
            )

    # ── Internal ────────────────────────────────────────────────

    @staticmethod
    def _state(session: Session) -> RegistryStateDB:
        state = session.get(RegistryStateDB, 1)
        if state is None:
            raise InvalidState(
                "Registry store is not initialized",
                code=ErrorCode.NOT_INITIALIZED,
            )
        return state

    @staticmethod
    def _token_row(session: Session, token_id: int) -> TokenDB:
        row = None
        if isinstance(token_id, int) and not isinstance(token_id, bool) and token_id > 0:
            row = session.get(TokenDB, token_id)
        if row is None:
            raise InvalidState(f"Token {token_id!r} does not exist", code=ErrorCode.NOT_FOUND)
        return row

    @staticmethod
    def _append_record(session: Session, record: MintRecord) -> None:
        last = session.execute(
            select(MintRecordDB).order_by(MintRecordDB.token_id.desc()).limit(1)
        ).scalar_one_or_none()
        previous_hash = last.record_hash if last is not None else GENESIS_HASH
        session.add(
            MintRecordDB(
                token_id=record.token_id,
                to_principal=record.to,
                kind=record.kind.value,
                external_id_1=str(record.external_id_1),
                external_id_2=str(record.external_id_2),
                uri=record.uri,
                previous_hash=previous_hash,
                record_hash=record.compute_hash(previous_hash),
            )
        )

    def _emit(self, record: MintRecord) -> None:
        for sink in self.sinks:
            try:
                sink(record)
            except Exception:
                logger.exception(
                    "Mint record sink %r failed for token %d", sink, record.token_id
                )

    @staticmethod
    def _to_token(row: TokenDB) -> Token:
        return Token(
            id=row.id,
            owner=row.owner,
            uri=row.uri,
            metadata=NftMeta(
                kind=NftKind(row.kind),
                external_id_1=int(row.external_id_1),
                external_id_2=int(row.external_id_2),
            ),
            minted_at=row.minted_at,
        )

    @staticmethod
    def _to_record(row: MintRecordDB) -> MintRecord:
        return MintRecord(
            token_id=row.token_id,
            to=row.to_principal,
            kind=NftKind(row.kind),
            external_id_1=int(row.external_id_1),
            external_id_2=int(row.external_id_2),
            uri=row.uri,
        )
