# -*- coding: utf-8 -*-
"""
Provenance Tracking for the Footprint Engine

Provides a SHA-256 based audit trail for footprint calculations. Every
entry-level calculation, factor resolution and assessment summary is
appended to an in-memory chain-hashed log so that a stored result can be
traced back to the factors and inputs that produced it.

Guarantees:
    - All hashes are deterministic SHA-256
    - Chain hashing links operations in sequence
    - JSON export for external audit systems

Entity Types:
    - emission_factor: Resolved factor records
    - calculation: Entry-level emission results
    - assessment: Aggregated assessment results

Example:
    >>> from carbonmarket.footprint.provenance import ProvenanceTracker
    >>> tracker = ProvenanceTracker()
    >>> entry = tracker.record("calculation", "calculate", "scope1-0")
    >>> assert tracker.verify_chain() is True
"""

from __future__ import annotations

import hashlib
import json
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

_GENESIS = "CM-FOOTPRINT-GENESIS"


def _utcnow() -> datetime:
    """Return current UTC datetime with microseconds zeroed."""
    return datetime.now(timezone.utc).replace(microsecond=0)


# ---------------------------------------------------------------------------
# ProvenanceEntry dataclass
# ---------------------------------------------------------------------------


@dataclass
class ProvenanceEntry:
    """A single tamper-evident provenance record.

    Attributes:
        entity_type: Type of entity being tracked (emission_factor,
            calculation, assessment).
        entity_id: Identifier of the entity instance.
        action: Action performed (resolve, calculate, aggregate).
        hash_value: SHA-256 chain hash of this entry.
        parent_hash: Chain hash of the preceding entry.
        timestamp: UTC ISO-formatted timestamp.
        metadata: Additional context, always including ``data_hash``.
    """

    entity_type: str
    entity_id: str
    action: str
    hash_value: str
    parent_hash: str
    timestamp: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the entry to a plain dictionary."""
        return {
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "action": self.action,
            "hash_value": self.hash_value,
            "parent_hash": self.parent_hash,
            "timestamp": self.timestamp,
            "metadata": self.metadata,
        }


# ---------------------------------------------------------------------------
# ProvenanceTracker
# ---------------------------------------------------------------------------


class ProvenanceTracker:
    """Chain-hashed operation log for footprint calculations.

    Thread-safe via a reentrant lock. The genesis hash anchors the chain;
    every new entry incorporates the previous chain hash so that any
    tampering is detectable via ``verify_chain()``.

    Example:
        >>> tracker = ProvenanceTracker()
        >>> tracker.record("assessment", "aggregate", "a-1", data={"total": 1.0})
        >>> tracker.entry_count
        1
    """

    def __init__(self, genesis: str = _GENESIS) -> None:
        self._genesis_hash: str = hashlib.sha256(
            genesis.encode("utf-8")
        ).hexdigest()
        self._entries: List[ProvenanceEntry] = []
        self._last_hash: str = self._genesis_hash
        self._lock = threading.RLock()
        logger.debug(
            "ProvenanceTracker initialized with genesis prefix=%s",
            self._genesis_hash[:16],
        )

    def record(
        self,
        entity_type: str,
        action: str,
        entity_id: str,
        data: Optional[Any] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> ProvenanceEntry:
        """Append an entry to the chain.

        Args:
            entity_type: Type of entity being tracked.
            action: Action performed on the entity.
            entity_id: Identifier of the entity.
            data: Optional JSON-serializable payload; only its hash is kept.
            metadata: Optional extra context.

        Returns:
            The newly created ProvenanceEntry.

        Raises:
            ValueError: If entity_type, action or entity_id is empty.
        """
        if not entity_type:
            raise ValueError("entity_type must not be empty")
        if not action:
            raise ValueError("action must not be empty")
        if not entity_id:
            raise ValueError("entity_id must not be empty")

        timestamp = _utcnow().isoformat()
        data_hash = self.build_hash(data)
        entry_metadata: Dict[str, Any] = {"data_hash": data_hash}
        if metadata:
            entry_metadata.update(metadata)

        with self._lock:
            parent_hash = self._last_hash
            chain_hash = self._compute_chain_hash(
                parent_hash, data_hash, action, timestamp,
            )
            entry = ProvenanceEntry(
                entity_type=entity_type,
                entity_id=entity_id,
                action=action,
                hash_value=chain_hash,
                parent_hash=parent_hash,
                timestamp=timestamp,
                metadata=entry_metadata,
            )
            self._entries.append(entry)
            self._last_hash = chain_hash

        logger.debug(
            "Provenance entry added: %s/%s action=%s hash=%s",
            entity_type, entity_id, action, chain_hash[:16],
        )
        return entry

    def verify_chain(self) -> bool:
        """Check that every entry links to its predecessor.

        Returns:
            True if the chain is intact, False if tampering is detected.
        """
        with self._lock:
            chain = list(self._entries)

        expected_parent = self._genesis_hash
        for i, entry in enumerate(chain):
            if entry.parent_hash != expected_parent:
                logger.warning(
                    "verify_chain: chain break at entry[%d]", i,
                )
                return False
            recomputed = self._compute_chain_hash(
                entry.parent_hash,
                entry.metadata.get("data_hash", ""),
                entry.action,
                entry.timestamp,
            )
            if recomputed != entry.hash_value:
                logger.warning(
                    "verify_chain: hash mismatch at entry[%d]", i,
                )
                return False
            expected_parent = entry.hash_value
        return True

    def get_entries(
        self,
        entity_type: Optional[str] = None,
        action: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[ProvenanceEntry]:
        """Return entries filtered by entity_type and/or action.

        Args:
            entity_type: Optional entity type filter.
            action: Optional action filter.
            limit: Optional max entries to return (most recent).
        """
        with self._lock:
            entries = list(self._entries)

        if entity_type:
            entries = [e for e in entries if e.entity_type == entity_type]
        if action:
            entries = [e for e in entries if e.action == action]
        if limit is not None and limit > 0 and len(entries) > limit:
            entries = entries[-limit:]
        return entries

    def export_json(self) -> str:
        """Export all provenance records as a formatted JSON string."""
        with self._lock:
            chain_dicts = [entry.to_dict() for entry in self._entries]
        return json.dumps(chain_dicts, indent=2, default=str)

    def clear(self) -> None:
        """Reset to the genesis state. Primarily intended for testing."""
        with self._lock:
            self._entries.clear()
            self._last_hash = self._genesis_hash
        logger.info("ProvenanceTracker reset to genesis state")

    @property
    def entry_count(self) -> int:
        with self._lock:
            return len(self._entries)

    @property
    def last_hash(self) -> str:
        with self._lock:
            return self._last_hash

    @property
    def genesis_hash(self) -> str:
        return self._genesis_hash

    def build_hash(self, data: Optional[Any]) -> str:
        """Compute a standalone SHA-256 hash for JSON-serializable data."""
        if data is None:
            serialized = "null"
        else:
            serialized = json.dumps(data, sort_keys=True, default=str)
        return hashlib.sha256(serialized.encode("utf-8")).hexdigest()

    @staticmethod
    def _compute_chain_hash(
        parent_hash: str,
        data_hash: str,
        action: str,
        timestamp: str,
    ) -> str:
        combined = json.dumps(
            {
                "action": action,
                "data_hash": data_hash,
                "parent_hash": parent_hash,
                "timestamp": timestamp,
            },
            sort_keys=True,
        )
        return hashlib.sha256(combined.encode("utf-8")).hexdigest()

    def __len__(self) -> int:
        return self.entry_count

    def __repr__(self) -> str:
        return (
            f"ProvenanceTracker(entries={self.entry_count}, "
            f"genesis_prefix={self._genesis_hash[:12]})"
        )


__all__ = ["ProvenanceEntry", "ProvenanceTracker"]
