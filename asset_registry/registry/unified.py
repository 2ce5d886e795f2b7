"""
Unified Registry — one deployed registry: access control plus token ledger.

This is the external surface of the system. It wires an AccessController and
a TokenRegistry to the same RegistryStore and exposes:

- construction with the deploying admin principal
- the five typed mint entry points (Minter only)
- `set_minter` / `set_administrator` (Administrator only)
- read-only role, ownership, URI and metadata lookups
"""

from __future__ import annotations

import logging
from typing import Iterable

from asset_registry.access.control import AccessController
from asset_registry.errors import ErrorCode, InvalidState
from asset_registry.registry.schema import NftMeta, Role, Token
from asset_registry.registry.service import TokenRegistry
from asset_registry.registry.sinks import MintRecordSink
from asset_registry.registry.store import RegistryStore

logger = logging.getLogger(__name__)


class UnifiedRegistry:
    """
    A role-gated registry of typed tokens.

    Usage:
        registry = UnifiedRegistry(RegistryStore.in_memory(), admin="0xA")
        token_id = registry.mint_badge("0xA", to="0xU", uri="ipfs://b", badge_id=7)

    Passing `admin` deploys a fresh store. Omitting it attaches to a store
    that was deployed earlier.
    """

    def __init__(
        self,
        store: RegistryStore,
        admin: str | None = None,
        sinks: Iterable[MintRecordSink] = (),
    ) -> None:
        self.store = store
        self.access = AccessController(store)
        self.tokens = TokenRegistry(store, self.access, sinks=sinks)

        if admin is not None:
            self.access.initialize(admin)
            logger.info("Registry deployed: admin=%s", admin)
        elif not self.access.is_initialized():
            raise InvalidState(
                "Cannot attach: registry store has not been deployed",
                code=ErrorCode.NOT_INITIALIZED,
            )

    # ── Mint Entry Points ───────────────────────────────────────

    def mint_profile(self, caller: str, to: str, uri: str, profile_id: int) -> int:
        return self.tokens.mint_profile(caller, to, uri, profile_id)

    def mint_access_pass(self, caller: str, to: str, uri: str, creator_id: int, tier: int) -> int:
        return self.tokens.mint_access_pass(caller, to, uri, creator_id, tier)

    def mint_event_ticket(
        self, caller: str, to: str, uri: str, event_id: int, seat_or_tier: int
    ) -> int:
        return self.tokens.mint_event_ticket(caller, to, uri, event_id, seat_or_tier)

    def mint_badge(self, caller: str, to: str, uri: str, badge_id: int) -> int:
        return self.tokens.mint_badge(caller, to, uri, badge_id)

    def mint_collectible(self, caller: str, to: str, uri: str, pack_id: int, version: int) -> int:
        return self.tokens.mint_collectible(caller, to, uri, pack_id, version)

    def transfer(self, caller: str, from_: str, to: str, token_id: int) -> None:
        self.tokens.transfer(caller, from_, to, token_id)

    # ── Administration ──────────────────────────────────────────

    def set_minter(self, caller: str, target: str, enabled: bool) -> None:
        self.access.set_minter(caller, target, enabled)

    def set_administrator(self, caller: str, target: str, enabled: bool) -> None:
        self.access.set_administrator(caller, target, enabled)

    # ── Queries ─────────────────────────────────────────────────

    def has_role(self, role: Role, principal: str) -> bool:
        return self.access.has_role(role, principal)

    def get_metadata(self, token_id: int) -> NftMeta:
        return self.tokens.get_metadata(token_id)

    def get_token(self, token_id: int) -> Token:
        return self.tokens.get_token(token_id)

    def owner_of(self, token_id: int) -> str:
        return self.tokens.owner_of(token_id)

    def token_uri(self, token_id: int) -> str:
        return self.tokens.token_uri(token_id)

    def balance_of(self, owner: str) -> int:
        return self.tokens.balance_of(owner)

    def total_minted(self) -> int:
        return self.tokens.total_minted()
