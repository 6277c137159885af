"""Persistence layer for the in-memory gallery.

JSON save/load with numpy ndarray <-> list conversion.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Union

from facebank import __version__
from facebank.gallery import InMemoryGallery
from facebank.types import AngleClass, Descriptor, DescriptorKind, GalleryRecord, Identity

PathLike = Union[str, Path]


def save_gallery(gallery: InMemoryGallery, path: PathLike) -> None:
    """Save an InMemoryGallery to JSON.

    Descriptor values are written as lists tagged with their kind.
    Includes _version metadata.

    Args:
        gallery: Gallery to save.
        path: Output JSON file path.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    data = {
        "identities": [
            _identity_to_dict(identity, gallery.records_for(identity.identity_id))
            for identity in gallery.identities()
        ],
        "_version": {
            "app": "facebank",
            "app_version": __version__,
            "created_at": datetime.now(timezone.utc).isoformat(),
        },
    }

    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)


def load_gallery(path: PathLike) -> InMemoryGallery:
    """Load an InMemoryGallery from JSON.

    Captured angles and completeness are rebuilt from the stored records.

    Args:
        path: Path to the gallery JSON file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If a stored descriptor has an unsupported length.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Gallery file not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)

    gallery = InMemoryGallery()
    for entry in data.get("identities", []):
        identity = gallery.create_identity(entry["display_name"], identity_id=entry["identity_id"])
        identity.created_at = entry.get("created_at", identity.created_at)
        for rec in entry.get("records", []):
            gallery.append(_dict_to_record(entry["identity_id"], rec))
    return gallery


def _identity_to_dict(identity: Identity, records: list[GalleryRecord]) -> dict:
    return {
        "identity_id": identity.identity_id,
        "display_name": identity.display_name,
        "created_at": identity.created_at,
        "records": [
            {
                "angle_class": record.angle_class.value,
                "kind": record.descriptor.kind.value,
                "descriptor": record.descriptor.values.tolist(),
                "captured_at": record.captured_at,
                "confidence": record.confidence,
            }
            for record in records
        ],
    }


def _dict_to_record(identity_id: str, data: dict) -> GalleryRecord:
    kind = data.get("kind")
    if kind is None:
        descriptor = Descriptor.from_values(data["descriptor"])
    else:
        descriptor = Descriptor(values=data["descriptor"], kind=DescriptorKind(kind))
    return GalleryRecord(
        identity_id=identity_id,
        angle_class=AngleClass.from_string(data["angle_class"]),
        descriptor=descriptor,
        captured_at=data.get("captured_at", 0.0),
        confidence=data.get("confidence", 0.8),
    )


__all__ = ["save_gallery", "load_gallery"]
