from __future__ import annotations

import hashlib
import re
from pathlib import Path
from typing import Any
from urllib.parse import unquote, urlparse

from tradeops.config import settings

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def storage_root() -> Path:
    """Return the absolute storage root for this backend instance."""

    root = Path(settings.storage_dir)
    if root.is_absolute():
        return root

    # backend/tradeops/services/... -> backend/
    backend_root = Path(__file__).resolve().parents[2]
    return (backend_root / root).resolve()


def safe_filename(name: str) -> str:
    cleaned = _UNSAFE_CHARS.sub("_", str(name or "").strip()).strip("._")
    return cleaned or "document"


def write_document_bytes(
    *,
    folder: str,
    filename: str,
    content: bytes,
    content_type: str,
) -> dict[str, Any]:
    root = storage_root()
    target_dir = (root / folder).resolve()
    if not target_dir.is_relative_to(root.resolve()):
        raise ValueError("Invalid storage folder")
    target_dir.mkdir(parents=True, exist_ok=True)

    target_path = (target_dir / filename).resolve()
    if not target_path.is_relative_to(target_dir):
        raise ValueError("Invalid document path")

    tmp_path = target_path.with_suffix(target_path.suffix + ".tmp")
    sha256 = hashlib.sha256(content).hexdigest()

    tmp_path.write_bytes(content)
    tmp_path.replace(target_path)

    return {
        "filename": filename,
        "content_type": content_type,
        "size_bytes": len(content),
        "checksum_sha256": sha256,
        "storage_uri": f"file://{target_path.as_posix()}",
    }


def resolve_storage_uri(uri: str) -> Path:
    """Map a ``file://`` URI back to a path inside the storage root."""

    parsed = urlparse(str(uri or ""))
    if parsed.scheme != "file":
        raise ValueError("Unsupported storage URI")
    path = Path(unquote(parsed.path)).resolve()
    if not path.is_relative_to(storage_root().resolve()):
        raise ValueError("Storage URI outside storage root")
    return path
