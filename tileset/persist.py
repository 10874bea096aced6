from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Callable, Dict, List, Tuple


log = logging.getLogger(__name__)

# persist(path, data) -> True when the bytes landed; failure carries no detail.
Persist = Callable[[str, bytes], bool]


def write_file(path: str, data: bytes) -> bool:
    """Write bytes to `path`, creating parent directories. Never raises on I/O errors."""
    target = Path(path)
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
    except OSError as e:
        log.error("cannot write %s: %s", target, e, extra={"path": str(target)})
        return False
    log.debug("wrote %d bytes", len(data), extra={"path": str(target)})
    return True


class MemoryStore:
    """
    In-memory persist target. Keeps the last bytes per path and a call log.

    Usage:
        store = MemoryStore()
        write_box_descriptor(..., persist=store)
        doc = store.load_json("tileset.json")
    """

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.files: Dict[str, bytes] = {}
        self.calls: List[Tuple[str, int]] = []

    def __call__(self, path: str, data: bytes) -> bool:
        self.calls.append((str(path), len(data)))
        if self.fail:
            return False
        self.files[str(path)] = bytes(data)
        return True

    def load_json(self, path: str):
        return json.loads(self.files[str(path)].decode("utf-8"))
