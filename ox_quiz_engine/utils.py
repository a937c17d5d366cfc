from __future__ import annotations

import hashlib
import json
import os
import random
import re
import string
import tempfile
import threading
import time
from pathlib import Path
from typing import Any

_ID_ALPHABET = string.digits + string.ascii_lowercase
_ID_SUFFIX_LEN = 9

_id_lock = threading.Lock()
_last_id_ms = 0
_id_rng = random.SystemRandom()


def now_ms() -> int:
    """Current wall-clock time as integer epoch milliseconds."""
    return time.time_ns() // 1_000_000


def generate_id() -> str:
    """New entity id: '<epoch-ms>_<9 base-36 chars>'.

    The millisecond part never goes backwards inside one process, even if the
    wall clock does.
    """
    global _last_id_ms
    with _id_lock:
        ms = max(now_ms(), _last_id_ms)
        _last_id_ms = ms
    suffix = "".join(_id_rng.choice(_ID_ALPHABET) for _ in range(_ID_SUFFIX_LEN))
    return f"{ms}_{suffix}"


def safe_filename_token(text: str, max_len: int = 50) -> str:
    text = text.strip().lower()
    text = re.sub(r"[^a-z0-9_-]+", "_", text)
    text = re.sub(r"_+", "_", text).strip("_")
    return text[:max_len] or "token"


def slugify(text: str, max_len: int = 50, *, add_hash: bool = True) -> str:
    """Safe filename slug.

    Notes:
    - Keeps output ASCII-safe for Windows paths.
    - Optionally appends a short sha1 suffix so '@a' and 'a' do not collide.
    """
    base = safe_filename_token(text, max_len=max_len)
    if not add_hash:
        return base
    h = hashlib.sha1(text.encode("utf-8"), usedforsecurity=False).hexdigest()[:8]
    # keep total length bounded
    if len(base) + 1 + len(h) > max_len:
        base = base[: max(1, max_len - 1 - len(h))]
    return f"{base}_{h}"


def write_text_atomic(path: str | Path, text: str) -> None:
    """Replace path with text; readers see either the old or the new content."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise


def load_json(path: str | Path) -> Any:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def round_percent(value: float, digits: int = 2) -> float:
    return round(float(value), digits)
