"""
tsqn — Change-Record Codec

Converts change records to and from JSON-compatible dicts, for audit logs
or for sending a record to another process that will undo() or
has_changes() against it.

Encoding:
  META               → "#"
  int key 3          → "@3"
  "#x", "@x", "\\x"  → "\\#x", "\\@x", "\\\\x"   (escaped with a leading backslash)
  UndoEntry(v)       → {"original": v}
  UndoEntry(MISSING) → {}                      (key was absent before)
  deleted key        → value null, entry gains "deleted": true

Values of keys that carry an undo entry are data and are emitted verbatim.
Every other dict value is a nested record and is encoded recursively.
"""

from __future__ import annotations

import json
from typing import Any

from tsqn.types import META, MISSING, Operator, UndoEntry

META_KEY = "#"
INDEX_PREFIX = "@"
ESCAPE = "\\"

_RESERVED_PREFIXES = (META_KEY, INDEX_PREFIX, ESCAPE)


class CodecError(Exception):
    """A change record could not be encoded or decoded."""
    pass


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def dump_changes(changes: dict | None) -> dict | None:
    """Encode a change record. The result shares data values with the record."""
    if changes is None:
        return None
    if not isinstance(changes, dict):
        raise CodecError(f"Change record must be a dict, got {type(changes).__name__}")
    return _dump(changes)


def load_changes(obj: dict | None) -> dict | None:
    if obj is None:
        return None
    return _load(obj)


def to_json(changes: dict | None, **kwargs: Any) -> str:
    kwargs.setdefault("sort_keys", True)
    try:
        return json.dumps(dump_changes(changes), **kwargs)
    except (TypeError, ValueError) as e:
        raise CodecError(f"Change record is not JSON-serializable: {e}") from e


def from_json(text: str | bytes) -> dict | None:
    try:
        obj = json.loads(text)
    except json.JSONDecodeError as e:
        raise CodecError(f"Malformed change-record JSON: {e}") from e
    return load_changes(obj)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _encode_key(key: Any) -> str:
    if isinstance(key, bool):
        raise CodecError(f"Unsupported change-record key: {key!r}")
    if isinstance(key, int):
        return f"{INDEX_PREFIX}{key}"
    if isinstance(key, str):
        if key.startswith(_RESERVED_PREFIXES):
            return ESCAPE + key
        return key
    raise CodecError(f"Unsupported change-record key: {key!r}")


def _decode_key(raw: str) -> str | int:
    if raw.startswith(ESCAPE):
        return raw[1:]
    if raw.startswith(INDEX_PREFIX):
        try:
            return int(raw[1:])
        except ValueError as e:
            raise CodecError(f"Malformed index key: {raw!r}") from e
    return raw


def _dump(record: dict) -> dict:
    meta = record.get(META) or {}
    out: dict[str, Any] = {}

    for key, value in record.items():
        if key is META:
            continue
        if isinstance(key, Operator):
            raise CodecError(f"Unexpected operator in change record: {key!r}")
        encoded = _encode_key(key)
        if key in meta:
            out[encoded] = None if value is MISSING else value
        elif isinstance(value, dict):
            out[encoded] = _dump(value)
        else:
            out[encoded] = value

    if meta:
        entries: dict[str, Any] = {}
        for key, entry in meta.items():
            encoded_entry: dict[str, Any] = {} if entry.was_missing else {"original": entry.original}
            if record.get(key, MISSING) is MISSING:
                encoded_entry["deleted"] = True
            entries[_encode_key(key)] = encoded_entry
        out[META_KEY] = entries

    return out


def _load(obj: Any) -> dict:
    if not isinstance(obj, dict):
        raise CodecError(f"Encoded record must be an object, got {type(obj).__name__}")

    raw_meta = obj.get(META_KEY)
    meta: dict[Any, UndoEntry] = {}
    deleted: set[Any] = set()
    if raw_meta is not None:
        if not isinstance(raw_meta, dict):
            raise CodecError("Undo metadata must be an object")
        for raw_key, raw_entry in raw_meta.items():
            if not isinstance(raw_entry, dict):
                raise CodecError(f"Undo entry for {raw_key!r} must be an object")
            key = _decode_key(raw_key)
            meta[key] = UndoEntry(raw_entry["original"] if "original" in raw_entry else MISSING)
            if raw_entry.get("deleted"):
                deleted.add(key)

    record: dict[Any, Any] = {}
    for raw_key, value in obj.items():
        if raw_key == META_KEY:
            continue
        key = _decode_key(raw_key)
        if key in meta:
            record[key] = MISSING if key in deleted else value
        elif isinstance(value, dict):
            record[key] = _load(value)
        else:
            record[key] = value

    if meta:
        record[META] = meta
    return record
