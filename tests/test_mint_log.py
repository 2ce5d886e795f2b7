"""
Tests for the mint log hash chain.

Validates:
- Deterministic record hashing
- Chain linkage from the genesis hash
- Verification of an intact log
- Tamper detection
"""

from __future__ import annotations

from sqlalchemy import select, update

from asset_registry.registry.models import MintRecordDB, RegistryStateDB
from asset_registry.registry.schema import GENESIS_HASH, MintRecord, NftKind
from asset_registry.registry.store import RegistryStore
from asset_registry.registry.unified import UnifiedRegistry

ADMIN = "0xA"
USER = "0xU"


def make_record(**overrides) -> MintRecord:
    fields = {
        "token_id": 1,
        "to": USER,
        "kind": NftKind.BADGE,
        "external_id_1": 7,
        "external_id_2": 0,
        "uri": "ipfs://b",
    }
    fields.update(overrides)
    return MintRecord(**fields)


class TestMintRecordHash:
    """Test the MintRecord hash computation."""

    def test_compute_hash_deterministic(self):
        record = make_record()
        assert record.compute_hash(GENESIS_HASH) == record.compute_hash(GENESIS_HASH)

    def test_compute_hash_changes_with_content(self):
        assert (
            make_record(uri="ipfs://a").compute_hash(GENESIS_HASH)
            != make_record(uri="ipfs://b").compute_hash(GENESIS_HASH)
        ), "Different content should produce different hash"

    def test_compute_hash_depends_on_previous(self):
        record = make_record()
        assert record.compute_hash(GENESIS_HASH) != record.compute_hash("f" * 64)

    def test_compute_hash_format(self):
        h = make_record().compute_hash(GENESIS_HASH)
        assert len(h) == 64, "SHA-256 hex digest should be 64 chars"
        assert all(c in "0123456789abcdef" for c in h), "Hash should be lowercase hex"

    def test_alias_and_field_names_equivalent(self):
        by_alias = MintRecord.model_validate(
            {
                "tokenId": 1,
                "to": USER,
                "kind": "badge",
                "externalId1": 7,
                "externalId2": 0,
                "uri": "ipfs://b",
            }
        )
        assert by_alias == make_record()


class TestMintLog:
    """Test the persisted, hash-chained mint log."""

    def setup_method(self):
        self.store = RegistryStore.in_memory()
        self.registry = UnifiedRegistry(self.store, admin=ADMIN)
        self.registry.mint_profile(ADMIN, USER, "ipfs://p", 42)
        self.registry.mint_badge(ADMIN, USER, "ipfs://b", 7)
        self.registry.mint_collectible(ADMIN, USER, "ipfs://c", 3, 2)

    def test_records_in_token_order(self):
        records = self.registry.tokens.get_mint_records()
        assert [r.token_id for r in records] == [1, 2, 3]
        assert records[0].kind == NftKind.PROFILE

    def test_get_single_record(self):
        record = self.registry.tokens.get_mint_record(2)
        assert record is not None
        assert (record.external_id_1, record.uri) == (7, "ipfs://b")
        assert self.registry.tokens.get_mint_record(99) is None

    def test_pagination(self):
        page = self.registry.tokens.get_mint_records(limit=1, offset=1)
        assert [r.token_id for r in page] == [2]

    def test_chain_linkage(self):
        with self.store.transaction() as session:
            rows = session.execute(
                select(MintRecordDB).order_by(MintRecordDB.token_id)
            ).scalars().all()
            assert rows[0].previous_hash == GENESIS_HASH
            assert rows[1].previous_hash == rows[0].record_hash
            assert rows[2].previous_hash == rows[1].record_hash

    def test_verify_intact_log(self):
        is_valid, verified, message = self.registry.tokens.verify_mint_log()
        assert is_valid, message
        assert verified == 3

    def test_verify_empty_log(self):
        registry = UnifiedRegistry(RegistryStore.in_memory(), admin=ADMIN)
        is_valid, verified, _ = registry.tokens.verify_mint_log()
        assert is_valid
        assert verified == 0

    def test_tamper_detection(self):
        """Altering a stored record after the fact should be detectable."""
        with self.store.transaction() as session:
            session.execute(
                update(MintRecordDB)
                .where(MintRecordDB.token_id == 2)
                .values(uri="ipfs://forged")
            )
        is_valid, verified, message = self.registry.tokens.verify_mint_log()
        assert not is_valid
        assert verified == 1
        assert "Hash mismatch at token 2" in message

    def test_chain_break_detection(self):
        with self.store.transaction() as session:
            session.execute(
                update(MintRecordDB)
                .where(MintRecordDB.token_id == 3)
                .values(previous_hash="f" * 64)
            )
        is_valid, verified, message = self.registry.tokens.verify_mint_log()
        assert not is_valid
        assert verified == 2
        assert "Chain break" in message

    def test_counter_mismatch_detection(self):
        with self.store.transaction() as session:
            session.execute(
                update(RegistryStateDB).where(RegistryStateDB.id == 1).values(token_counter=5)
            )
        is_valid, _, message = self.registry.tokens.verify_mint_log()
        assert not is_valid
        assert "counter is 5" in message
