"""Manifest file loading with validation.

All file operations enforce a size limit. Input validation is performed at
the boundary, so everything returned here can be handed to a controller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from .config import MAX_MANIFEST_FILE_SIZE_BYTES
from .errors import ConfigurationError
from .lifecycle import ResourceKind
from .models import (
    ConnectionResource,
    DatastoreResource,
    NetworkResource,
    ResourceModel,
    format_validation_errors,
)

logger = logging.getLogger(__name__)

MODEL_FOR_KIND: dict[ResourceKind, type[ResourceModel]] = {
    ResourceKind.NETWORK: NetworkResource,
    ResourceKind.DATASTORE: DatastoreResource,
    ResourceKind.CONNECTION: ConnectionResource,
}


class SpecLoadError(Exception):
    """Raised when manifest loading or validation fails."""

    pass


@dataclass
class Manifest:
    """One desired-state document from a manifest file."""

    kind: ResourceKind
    resource: ResourceModel
    source: Path
    index: int = 0  # Position in a multi-document file


def _read_manifest_file(path: Path) -> str:
    if not path.exists():
        raise SpecLoadError(f"Manifest file not found: {path}")

    try:
        file_size = path.stat().st_size
    except OSError as e:
        raise SpecLoadError(f"Failed to stat manifest file {path}: {e}") from e

    if file_size > MAX_MANIFEST_FILE_SIZE_BYTES:
        raise SpecLoadError(
            f"Manifest file exceeds maximum size of {MAX_MANIFEST_FILE_SIZE_BYTES} bytes: {path}"
        )

    try:
        return path.read_text(encoding="utf-8")
    except OSError as e:
        raise SpecLoadError(f"Failed to read manifest file {path}: {e}") from e


def _parse_document(raw_data: Any, path: Path, index: int) -> Manifest:
    where = f"{path} (document {index + 1})"

    if not isinstance(raw_data, dict):
        raise SpecLoadError(f"Manifest must be a YAML mapping: {where}")

    kind_name = raw_data.get("kind")
    if not kind_name:
        raise SpecLoadError(f"Manifest is missing 'kind': {where}")
    try:
        kind = ResourceKind.from_name(str(kind_name))
    except ConfigurationError as e:
        raise SpecLoadError(f"{e}: {where}") from e

    # Support both flat format and Kubernetes-style wrapper
    if "apiVersion" in raw_data and "spec" in raw_data:
        spec_data = raw_data.get("spec") or {}
        if not isinstance(spec_data, dict):
            raise SpecLoadError(f"Spec section must be a mapping: {where}")
        spec_data = dict(spec_data)

        # metadata.name stands in for a missing spec name
        metadata = raw_data.get("metadata") or {}
        if isinstance(metadata, dict) and "name" not in spec_data and metadata.get("name"):
            spec_data["name"] = metadata["name"]
    else:
        spec_data = {k: v for k, v in raw_data.items() if k != "kind"}

    try:
        resource = MODEL_FOR_KIND[kind].model_validate(spec_data)
    except ValidationError as e:
        raise SpecLoadError(
            f"Validation failed for {where}:\n{format_validation_errors(e)}"
        ) from e

    return Manifest(kind=kind, resource=resource, source=path, index=index)


def load_manifests(path: Path) -> list[Manifest]:
    """Load and validate every document in a YAML manifest file.

    Args:
        path: Manifest file; may hold several documents separated by '---'.

    Returns:
        One validated Manifest per non-empty document, in file order.

    Raises:
        SpecLoadError: If the file cannot be read, is not valid YAML, or any
            document fails validation.
    """
    content = _read_manifest_file(path)

    try:
        documents = list(yaml.safe_load_all(content))
    except yaml.YAMLError as e:
        raise SpecLoadError(f"Invalid YAML in {path}: {e}") from e

    manifests = [
        _parse_document(document, path, index)
        for index, document in enumerate(documents)
        if document is not None
    ]
    if not manifests:
        raise SpecLoadError(f"Manifest file contains no documents: {path}")

    logger.info(
        "Loaded manifests",
        extra={"path": str(path), "count": len(manifests)},
    )
    return manifests


def load_manifest(path: Path, kind: ResourceKind | None = None) -> Manifest:
    """Load a file that must hold exactly one manifest.

    Raises:
        SpecLoadError: If the file holds more than one document, or the
            document is not of the expected kind.
    """
    manifests = load_manifests(path)
    if len(manifests) != 1:
        raise SpecLoadError(f"Expected exactly one manifest in {path}, found {len(manifests)}")

    manifest = manifests[0]
    if kind is not None and manifest.kind != kind:
        raise SpecLoadError(
            f"Expected a {kind.value} manifest in {path}, found {manifest.kind.value}"
        )
    return manifest
