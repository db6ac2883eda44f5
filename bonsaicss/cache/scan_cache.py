"""Per-file scan cache, in memory and optionally persisted as JSON."""

import hashlib
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from bonsaicss.core.patterns import parse_pattern_entries, pattern_to_string
from bonsaicss.core.types import CacheEntry, FileScan
from bonsaicss.telemetry.metrics import scan_cache_hits_total, scan_cache_misses_total

logger = logging.getLogger(__name__)

CACHE_VERSION = 1
CACHE_FILE = f"scan-cache-v{CACHE_VERSION}.json"


def file_signature(path: str, keep_dynamic_patterns: bool, cwd: Optional[str] = None) -> Optional[str]:
    """Signature of a file for the built-in scan mode, or None if it cannot be stat'ed.

    Cached origins are labelled relative to ``cwd``, so a digest of it is part
    of the mode when given.
    """
    try:
        stat = os.stat(path)
    except OSError:
        return None
    mode = f"builtin:{'true' if keep_dynamic_patterns else 'false'}"
    if cwd is not None:
        digest = hashlib.sha256(os.path.abspath(cwd).encode("utf-8")).hexdigest()[:12]
        mode = f"{mode}:{digest}"
    return f"{mode}:{stat.st_mtime_ns}:{stat.st_size}"


def _to_key(path: str) -> str:
    return os.path.abspath(path)


def _entry_from_scan(signature: str, scan: FileScan) -> CacheEntry:
    return CacheEntry(
        signature=signature,
        classes=sorted(scan.classes),
        dynamic_patterns=[pattern_to_string(p) for p in scan.dynamic_patterns],
        class_origins={name: sorted(origins) for name, origins in scan.class_origins.items()},
        warnings=list(scan.warnings),
    )


def _scan_from_entry(entry: CacheEntry) -> FileScan:
    return FileScan(
        classes=set(entry.classes),
        dynamic_patterns=parse_pattern_entries(entry.dynamic_patterns),
        class_origins={name: set(origins) for name, origins in entry.class_origins.items()},
        warnings=list(entry.warnings),
    )


def _is_str_list(value: Any) -> bool:
    return isinstance(value, list) and all(isinstance(item, str) for item in value)


def _entry_from_json(value: Any) -> Optional[CacheEntry]:
    if not isinstance(value, dict) or not isinstance(value.get("signature"), str):
        return None
    classes = value.get("classes", [])
    patterns = value.get("dynamicPatterns", [])
    origins = value.get("classOrigins", {})
    warnings = value.get("warnings", [])
    if not (_is_str_list(classes) and _is_str_list(patterns) and _is_str_list(warnings)):
        return None
    if not isinstance(origins, dict) or not all(_is_str_list(v) for v in origins.values()):
        return None
    return CacheEntry(
        signature=value["signature"],
        classes=classes,
        dynamic_patterns=patterns,
        class_origins=origins,
        warnings=warnings,
    )


def _entry_to_json(entry: CacheEntry) -> Dict[str, Any]:
    return {
        "signature": entry.signature,
        "classes": entry.classes,
        "dynamicPatterns": entry.dynamic_patterns,
        "classOrigins": entry.class_origins,
        "warnings": entry.warnings,
    }


def resolve_cache_path(cache_dir: str) -> str:
    """Absolute path of the persisted cache file inside ``cache_dir``."""
    return os.path.abspath(os.path.join(cache_dir, CACHE_FILE))


def load_scan_cache(path: str) -> Dict[str, CacheEntry]:
    """Load a persisted cache file.

    A missing file, invalid JSON, a version mismatch or an unexpected shape
    all yield an empty cache.
    """
    if not os.path.isfile(path):
        return {}

    try:
        with open(path, "r", encoding="utf-8") as handle:
            data = json.load(handle)
    except (OSError, ValueError) as exc:
        logger.debug("Ignoring unreadable scan cache %s: %s", path, exc)
        return {}

    if not isinstance(data, dict) or not isinstance(data.get("entries"), dict):
        logger.debug("Ignoring scan cache %s with unexpected shape", path)
        return {}
    version = data.get("version")
    if isinstance(version, bool) or version != CACHE_VERSION:
        logger.debug("Ignoring scan cache %s with version %s", path, version)
        return {}

    entries: Dict[str, CacheEntry] = {}
    for key, value in data["entries"].items():
        entry = _entry_from_json(value)
        if entry is None:
            logger.debug("Ignoring scan cache %s with malformed entry for %s", path, key)
            return {}
        entries[key] = entry

    logger.debug("Loaded %d scan cache entries from %s", len(entries), path)
    return entries


def save_scan_cache(path: str, entries: Dict[str, CacheEntry]) -> None:
    """Write ``entries`` to ``path``. Best-effort: I/O errors are logged."""
    payload = {
        "version": CACHE_VERSION,
        "entries": {key: _entry_to_json(entry) for key, entry in entries.items()},
    }
    try:
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as handle:
            json.dump(payload, handle, indent=2)
    except OSError as exc:
        logger.warning("Failed to save scan cache to %s: %s", path, exc)
        return
    logger.debug("Saved %d scan cache entries to %s", len(entries), path)


def read_cache_entry(entries: Dict[str, CacheEntry], file: str, signature: str) -> Optional[FileScan]:
    """Return the cached scan for ``file`` if its signature still matches."""
    entry = entries.get(_to_key(file))
    if entry is None or entry.signature != signature:
        return None
    return _scan_from_entry(entry)


def write_cache_entry(entries: Dict[str, CacheEntry], file: str, signature: str, scan: FileScan) -> None:
    """Store (or overwrite) the scan of ``file``."""
    entries[_to_key(file)] = _entry_from_scan(signature, scan)


class ScanCache:
    """File-level scan cache owned by one caller.

    Entries are keyed by absolute path and reused while the file signature
    (mtime, size and scan mode) is unchanged. When ``persist_path`` is set,
    entries are loaded from it on construction and written back by ``save``.
    """

    def __init__(self, persist_path: Optional[str] = None):
        self.persist_path = persist_path
        self._entries: Dict[str, CacheEntry] = load_scan_cache(persist_path) if persist_path else {}
        self._cache_type = "persistent" if persist_path else "memory"
        self._hits = 0
        self._misses = 0

    def get(self, path: str, signature: str) -> Optional[FileScan]:
        scan = read_cache_entry(self._entries, path, signature)
        if scan is None:
            self._misses += 1
            scan_cache_misses_total.labels(cache_type=self._cache_type).inc()
            logger.debug("Scan cache miss for %s", path)
            return None
        self._hits += 1
        scan_cache_hits_total.labels(cache_type=self._cache_type).inc()
        logger.debug("Scan cache hit for %s", path)
        return scan

    def put(self, path: str, signature: str, scan: FileScan) -> None:
        write_cache_entry(self._entries, path, signature, scan)

    def clear(self) -> None:
        self._entries.clear()
        logger.info("Cleared scan cache")

    def keys(self) -> List[str]:
        return list(self._entries)

    def get_stats(self) -> Dict[str, Any]:
        return {
            "cache_type": self._cache_type,
            "entries": len(self._entries),
            "hits": self._hits,
            "misses": self._misses,
        }

    def save(self) -> None:
        """Persist entries when a ``persist_path`` is configured."""
        if self.persist_path:
            save_scan_cache(self.persist_path, self._entries)
