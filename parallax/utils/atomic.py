"""Session document persistence.

``JsonRecordStore`` keeps each session, with its messages and issues, in one
JSON document and rewrites the whole document on every change. Writes go to a
``.tmp`` sibling, are flushed to disk and then replace the document with a
single ``os.replace``, so a crash mid-write never leaves a truncated session.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, List

DOCUMENT_VERSION = 1


def atomic_write_json(path: Path, data: Any, *, indent: int = 2) -> None:
    """Write *data* as UTF-8 JSON to *path*, creating parent directories.

    On failure the temporary file is removed and the previous document is left untouched.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(path.name + ".tmp")
    payload = json.dumps(data, indent=indent, ensure_ascii=False, default=str)

    try:
        with open(tmp, "w", encoding="utf-8") as fh:
            fh.write(payload)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp, path)
    except Exception:
        tmp.unlink(missing_ok=True)
        raise


def write_session_document(
    path: Path,
    session: Dict[str, Any],
    messages: List[Dict[str, Any]],
    issues: List[Dict[str, Any]],
) -> None:
    atomic_write_json(
        path,
        {"version": DOCUMENT_VERSION, "session": session, "messages": messages, "issues": issues},
    )


def read_session_document(path: Path) -> Dict[str, Any]:
    """Load one session document. Raises ``ValueError`` if the file is not one."""
    path = Path(path)
    doc = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(doc, dict) or not isinstance(doc.get("session"), dict):
        raise ValueError(f"{path.name} is not a session document")
    doc.setdefault("messages", [])
    doc.setdefault("issues", [])
    return doc
