import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict


def _without_none(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Drops keys whose value is None so optional fields are not sent."""
    return {key: value for key, value in payload.items() if value is not None}


def write_json_atomic(path: str, data: object) -> None:
    """
    Atomically writes JSON data to a specified file. The data is written to a
    temporary file in the same directory as the target, which then replaces the
    target, so readers never observe a half-written file.

    Args:
        path: The path to the target file.
        data: The JSON-serializable data to be written.
    """
    target = Path(path)
    tmp_dir = target.parent if str(target.parent) else Path(".")
    with tempfile.NamedTemporaryFile("w", encoding="utf-8", dir=tmp_dir, delete=False) as tmp:
        json.dump(data, tmp, ensure_ascii=False, indent=2)
        tmp.flush()
        os.fsync(tmp.fileno())
        tmp_name = tmp.name
    os.replace(tmp_name, target)
