"""Gallery store: identities and their enrolled descriptor records.

The recognition path only ever reads a ``GallerySnapshot``: an immutable
copy taken under the store lock, so enrollment writes never show up in the
middle of a match scan.
"""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Protocol

from facebank.types import CANONICAL_ANGLES, GalleryRecord, Identity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GallerySnapshot:
    """Point-in-time view of the gallery.

    Attributes:
        records: identity_id -> records in capture order. Iteration order of
            the mapping is identity creation order.
        names: identity_id -> display name.
    """

    records: Dict[str, tuple[GalleryRecord, ...]] = field(default_factory=dict)
    names: Dict[str, str] = field(default_factory=dict)

    def __len__(self) -> int:
        return sum(len(recs) for recs in self.records.values())

    def __iter__(self) -> Iterator[GalleryRecord]:
        for recs in self.records.values():
            yield from recs

    @property
    def is_empty(self) -> bool:
        return len(self) == 0


class GalleryStore(Protocol):
    """Read/write contract of a descriptor gallery."""

    def create_identity(self, display_name: str) -> Identity:
        ...

    def get_identity(self, identity_id: str) -> Optional[Identity]:
        ...

    def identities(self) -> List[Identity]:
        ...

    def append(self, record: GalleryRecord) -> Identity:
        """Store one captured record and return the updated identity.

        Raises:
            KeyError: If the record's identity does not exist.
        """
        ...

    def delete(self, identity_id: str) -> bool:
        """Remove an identity and all of its records."""
        ...

    def snapshot(self, complete_only: bool = False) -> GallerySnapshot:
        ...


class InMemoryGallery:
    """Thread-safe in-memory GalleryStore."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._identities: Dict[str, Identity] = {}
        self._records: Dict[str, List[GalleryRecord]] = {}

    def create_identity(self, display_name: str, identity_id: Optional[str] = None) -> Identity:
        identity = Identity(
            identity_id=identity_id or uuid.uuid4().hex,
            display_name=display_name,
        )
        with self._lock:
            if identity.identity_id in self._identities:
                raise ValueError(f"Identity already exists: {identity.identity_id}")
            self._identities[identity.identity_id] = identity
            self._records[identity.identity_id] = []
        logger.info("Created identity %s (%s)", identity.identity_id, display_name)
        return identity

    def get_identity(self, identity_id: str) -> Optional[Identity]:
        with self._lock:
            return self._identities.get(identity_id)

    def identities(self) -> List[Identity]:
        with self._lock:
            return list(self._identities.values())

    def records_for(self, identity_id: str) -> List[GalleryRecord]:
        with self._lock:
            return list(self._records.get(identity_id, []))

    def append(self, record: GalleryRecord) -> Identity:
        with self._lock:
            identity = self._identities.get(record.identity_id)
            if identity is None:
                raise KeyError(f"Unknown identity: {record.identity_id}")
            was_complete = identity.is_complete
            self._records[record.identity_id].append(record)
            if record.angle_class in CANONICAL_ANGLES:
                identity.captured_angles.add(record.angle_class)

        logger.debug(
            "Stored %s record for %s (%d angles)",
            record.angle_class.value, record.identity_id, len(identity.captured_angles),
        )
        if identity.is_complete and not was_complete:
            logger.info("Enrollment complete for %s", identity.identity_id)
        return identity

    def delete(self, identity_id: str) -> bool:
        with self._lock:
            removed = self._identities.pop(identity_id, None)
            self._records.pop(identity_id, None)
        if removed is not None:
            logger.info("Deleted identity %s", identity_id)
        return removed is not None

    def snapshot(self, complete_only: bool = False) -> GallerySnapshot:
        with self._lock:
            ids = [
                iid for iid, ident in self._identities.items()
                if ident.is_complete or not complete_only
            ]
            return GallerySnapshot(
                records={iid: tuple(self._records[iid]) for iid in ids},
                names={iid: self._identities[iid].display_name for iid in ids},
            )

    def __len__(self) -> int:
        with self._lock:
            return len(self._identities)


__all__ = ["GallerySnapshot", "GalleryStore", "InMemoryGallery"]
