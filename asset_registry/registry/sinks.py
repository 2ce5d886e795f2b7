"""
Mint record sinks — observers that receive the audit record of every mint.

The Token Registry persists each mint record in its own hash-chained log and
then hands it to every registered sink, once, after the mint has committed.
Sinks are how external indexers and dashboards learn about new tokens; the
registry's state does not depend on a sink accepting the record.
"""

from __future__ import annotations

from typing import Protocol

import structlog

from asset_registry.registry.schema import MintRecord


class MintRecordSink(Protocol):
    """Anything callable with a MintRecord."""

    def __call__(self, record: MintRecord) -> None: ...


class StructlogMintSink:
    """Publishes each mint record as a structured log event."""

    event = "asset_registry.mint_record"

    def __init__(self, logger: structlog.typing.FilteringBoundLogger | None = None) -> None:
        self.log = logger or structlog.get_logger()

    def __call__(self, record: MintRecord) -> None:
        self.log.info(self.event, **record.to_audit_dict())


class InMemoryMintSink:
    """Collects mint records in order. Useful for embedding and tests."""

    def __init__(self) -> None:
        self.records: list[MintRecord] = []

    def __call__(self, record: MintRecord) -> None:
        self.records.append(record)

    def __len__(self) -> int:
        return len(self.records)
