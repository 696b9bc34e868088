"""
CacheBox — Cache Entry Codec

Serializes the ``{created_at, expires_at, value}`` envelope written by the
filesystem driver, and the ``{type, value}`` wrapper used by remote drivers.

Formats:
- json: pretty-printed UTF-8 JSON, non-ASCII text left unescaped. A string
  value holding a JSON document is stored as the decoded document.
- serialize / txt: the envelope is pickled.

Pickle payloads execute code on load. Only point a cache at directories and
servers that untrusted parties cannot write to.
"""

import json
import math
import pickle
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from ..config.schemas import CacheFormat, RemoteFormat
from ..errors import CacheDecodeError, CacheEncodeError

ENVELOPE_FIELDS = ("created_at", "expires_at", "value")


@dataclass(frozen=True)
class CacheEntry:
    """A stored value plus the timestamps needed to enforce its TTL."""

    created_at: int
    expires_at: int | None
    value: Any

    def is_expired(self, now: float) -> bool:
        """An entry without expires_at never expires."""
        return self.expires_at is not None and now > self.expires_at

    def to_dict(self) -> dict[str, Any]:
        return {
            "created_at": self.created_at,
            "expires_at": self.expires_at,
            "value": self.value,
        }


def _parse_json_text(value: Any) -> Any:
    """Return the decoded document if value is JSON text, else value unchanged."""
    if isinstance(value, (str, bytes, bytearray)):
        try:
            return json.loads(value)
        except (json.JSONDecodeError, UnicodeDecodeError):
            return value
    return value


def _to_json(data: dict[str, Any]) -> bytes:
    try:
        return json.dumps(data, indent=4, ensure_ascii=False).encode("utf-8")
    except (TypeError, ValueError) as e:
        raise CacheEncodeError(
            f"Value is not JSON serializable: {e}",
            details={"format": "json", "error": str(e)},
        ) from e


def _to_pickle(data: dict[str, Any], fmt: str) -> bytes:
    try:
        return pickle.dumps(data, protocol=pickle.HIGHEST_PROTOCOL)
    except (pickle.PicklingError, TypeError, AttributeError) as e:
        raise CacheEncodeError(
            f"Value cannot be serialized: {e}",
            details={"format": fmt, "error": str(e)},
        ) from e


def _from_json(data: bytes, fmt: str) -> Any:
    try:
        return json.loads(data)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise CacheDecodeError(
            f"Payload is not valid JSON: {e}",
            details={"format": fmt, "error": str(e)},
        ) from e


def _from_pickle(data: bytes, fmt: str) -> Any:
    try:
        return pickle.loads(data)
    except Exception as e:
        # pickle.loads surfaces corruption as almost any exception type
        raise CacheDecodeError(
            f"Payload cannot be unserialized: {e}",
            details={"format": fmt, "error": type(e).__name__},
        ) from e


def encode_entry(entry: CacheEntry, fmt: CacheFormat) -> bytes:
    """
    Encode an entry in the given format.

    Args:
        entry: Entry to encode
        fmt: Envelope format

    Returns:
        Bytes to write to disk

    Raises:
        CacheEncodeError: If the value cannot be represented in the format
    """
    fmt = CacheFormat(fmt)
    if fmt == CacheFormat.JSON:
        data = entry.to_dict()
        data["value"] = _parse_json_text(entry.value)
        return _to_json(data)

    return _to_pickle(entry.to_dict(), fmt.value)


def decode_entry(data: bytes, fmt: CacheFormat) -> CacheEntry:
    """
    Decode bytes written by encode_entry().

    Args:
        data: Raw file content
        fmt: Format the content was written in

    Returns:
        Decoded CacheEntry

    Raises:
        CacheDecodeError: If the payload is unparseable or not an envelope
    """
    fmt = CacheFormat(fmt)
    if fmt == CacheFormat.JSON:
        envelope = _from_json(data, fmt.value)
    else:
        envelope = _from_pickle(data, fmt.value)

    if not isinstance(envelope, dict):
        raise CacheDecodeError(
            "Cache payload is not an envelope",
            details={"format": fmt.value, "type": type(envelope).__name__},
        )

    missing = [name for name in ENVELOPE_FIELDS if name not in envelope]
    if missing:
        raise CacheDecodeError(
            f"Cache envelope is missing fields: {', '.join(missing)}",
            details={"format": fmt.value, "missing": missing},
        )

    created_at = envelope["created_at"]
    expires_at = envelope["expires_at"]
    if not _is_timestamp(created_at) or not (expires_at is None or _is_timestamp(expires_at)):
        raise CacheDecodeError(
            "Cache envelope has invalid timestamps",
            details={"format": fmt.value, "created_at": repr(created_at), "expires_at": repr(expires_at)},
        )

    return CacheEntry(
        created_at=int(created_at),
        expires_at=None if expires_at is None else int(expires_at),
        value=envelope["value"],
    )


def _is_timestamp(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    return isinstance(value, float) and math.isfinite(value)


# ------------ Remote value wrapping ------------


def wrap_value(value: Any, fmt: RemoteFormat) -> bytes:
    """
    Wrap a value as ``{type, value}`` for a remote store.

    Args:
        value: Value to store
        fmt: ``string`` pickles the wrapper, ``json`` writes it as JSON
            (JSON text values are decoded first)

    Returns:
        Bytes to hand to the remote client
    """
    fmt = RemoteFormat(fmt)
    if fmt == RemoteFormat.JSON:
        return _to_json({"type": fmt.value, "value": _parse_json_text(value)})
    return _to_pickle({"type": fmt.value, "value": value}, fmt.value)


def _typed(payload: Any, fmt: str) -> Any:
    if isinstance(payload, dict) and "type" in payload and "value" in payload:
        return payload["value"]
    raise CacheDecodeError(
        "Payload is not a typed value wrapper",
        details={"format": fmt, "type": type(payload).__name__},
    )


def _unwrap_pickled(data: bytes) -> Any:
    return _typed(_from_pickle(data, RemoteFormat.STRING.value), RemoteFormat.STRING.value)


def _unwrap_json(data: bytes) -> Any:
    return _typed(_from_json(data, RemoteFormat.JSON.value), RemoteFormat.JSON.value)


# Decoders are attempted in this order; the first success wins.
UNWRAP_ATTEMPTS: tuple[tuple[str, Callable[[bytes], Any]], ...] = (
    (RemoteFormat.STRING.value, _unwrap_pickled),
    (RemoteFormat.JSON.value, _unwrap_json),
)


def unwrap_value(data: bytes | str) -> Any:
    """
    Unwrap a value written by wrap_value() without knowing its format.

    Args:
        data: Raw payload from the remote store

    Returns:
        The wrapped value

    Raises:
        CacheDecodeError: If no decoder in UNWRAP_ATTEMPTS accepts the payload
    """
    if isinstance(data, str):
        data = data.encode("utf-8")

    failures: dict[str, str] = {}
    for name, decoder in UNWRAP_ATTEMPTS:
        try:
            return decoder(data)
        except CacheDecodeError as e:
            failures[name] = e.message

    raise CacheDecodeError(
        "Payload could not be decoded by any known format",
        details={"attempts": failures},
    )
