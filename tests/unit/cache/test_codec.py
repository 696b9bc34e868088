"""
CacheBox — Cache Entry Codec Tests

Covers envelope encoding per format, malformed payload detection and the
ordered decoder list used for remote values.
"""

import json
import pickle

import pytest

from cachebox.cache.codec import (
    UNWRAP_ATTEMPTS,
    CacheEntry,
    decode_entry,
    encode_entry,
    unwrap_value,
    wrap_value,
)
from cachebox.config.schemas import CacheFormat, RemoteFormat
from cachebox.errors import CacheDecodeError, CacheEncodeError


class TestCacheEntry:
    def test_entry_without_expiry_never_expires(self) -> None:
        entry = CacheEntry(created_at=100, expires_at=None, value="v")
        assert entry.is_expired(10**12) is False

    def test_entry_expires_strictly_after_deadline(self) -> None:
        entry = CacheEntry(created_at=100, expires_at=160, value="v")
        assert entry.is_expired(160) is False
        assert entry.is_expired(161) is True


class TestJsonFormat:
    def test_envelope_is_pretty_printed_with_unescaped_unicode(self) -> None:
        entry = CacheEntry(created_at=100, expires_at=160, value={"name": "Zoë"})
        raw = encode_entry(entry, CacheFormat.JSON)
        text = raw.decode("utf-8")

        assert "Zoë" in text
        assert "\\u" not in text
        assert '\n    "created_at": 100' in text
        assert json.loads(text) == {"created_at": 100, "expires_at": 160, "value": {"name": "Zoë"}}

    def test_json_text_value_is_stored_as_document(self) -> None:
        entry = CacheEntry(created_at=1, expires_at=None, value='{"a": [1, 2]}')
        decoded = decode_entry(encode_entry(entry, CacheFormat.JSON), CacheFormat.JSON)
        assert decoded.value == {"a": [1, 2]}

    def test_plain_text_value_is_stored_as_is(self) -> None:
        entry = CacheEntry(created_at=1, expires_at=None, value="not json at all")
        decoded = decode_entry(encode_entry(entry, CacheFormat.JSON), CacheFormat.JSON)
        assert decoded.value == "not json at all"

    def test_absent_expiry_round_trips_as_none(self) -> None:
        entry = CacheEntry(created_at=5, expires_at=None, value=[1, 2])
        decoded = decode_entry(encode_entry(entry, "json"), "json")
        assert decoded == entry

    def test_unserializable_value_raises_encode_error(self) -> None:
        entry = CacheEntry(created_at=1, expires_at=None, value={1, 2, 3})
        with pytest.raises(CacheEncodeError):
            encode_entry(entry, CacheFormat.JSON)

    def test_invalid_json_raises_decode_error(self) -> None:
        with pytest.raises(CacheDecodeError):
            decode_entry(b"{not json", CacheFormat.JSON)

    def test_non_envelope_document_raises_decode_error(self) -> None:
        with pytest.raises(CacheDecodeError):
            decode_entry(b"[1, 2, 3]", CacheFormat.JSON)

    def test_missing_fields_are_reported(self) -> None:
        with pytest.raises(CacheDecodeError) as exc_info:
            decode_entry(b'{"created_at": 1}', CacheFormat.JSON)

        assert exc_info.value.details["missing"] == ["expires_at", "value"]

    @pytest.mark.parametrize(
        "payload",
        [
            b'{"created_at": "yesterday", "expires_at": null, "value": 1}',
            b'{"created_at": Infinity, "expires_at": null, "value": 1}',
            b'{"created_at": 100, "expires_at": NaN, "value": 1}',
            b'{"created_at": 1e400, "expires_at": null, "value": 1}',
            b'{"created_at": 100, "expires_at": -Infinity, "value": 1}',
            b'{"created_at": true, "expires_at": null, "value": 1}',
        ],
    )
    def test_invalid_timestamps_raise_decode_error(self, payload: bytes) -> None:
        with pytest.raises(CacheDecodeError):
            decode_entry(payload, CacheFormat.JSON)

    def test_non_finite_timestamp_in_pickled_envelope(self) -> None:
        payload = pickle.dumps({"created_at": float("inf"), "expires_at": None, "value": 1})
        with pytest.raises(CacheDecodeError):
            decode_entry(payload, CacheFormat.SERIALIZE)

    def test_large_integer_timestamp_is_accepted(self) -> None:
        payload = json.dumps({"created_at": 10**400, "expires_at": None, "value": 1}).encode()
        assert decode_entry(payload, CacheFormat.JSON).created_at == 10**400


@pytest.mark.parametrize("fmt", [CacheFormat.SERIALIZE, CacheFormat.TXT])
class TestSerializedFormats:
    def test_arbitrary_python_values_survive(self, fmt: CacheFormat) -> None:
        value = {"tuple": (1, 2), "set": {3}, "bytes": b"\x00\xff", "nested": [{"k": None}]}
        entry = CacheEntry(created_at=10, expires_at=20, value=value)

        decoded = decode_entry(encode_entry(entry, fmt), fmt)

        assert decoded == entry

    def test_json_text_is_not_parsed(self, fmt: CacheFormat) -> None:
        entry = CacheEntry(created_at=10, expires_at=None, value='{"a": 1}')
        assert decode_entry(encode_entry(entry, fmt), fmt).value == '{"a": 1}'

    def test_garbage_raises_decode_error(self, fmt: CacheFormat) -> None:
        with pytest.raises(CacheDecodeError):
            decode_entry(b"definitely not a pickle", fmt)

    def test_truncated_payload_raises_decode_error(self, fmt: CacheFormat) -> None:
        raw = encode_entry(CacheEntry(created_at=1, expires_at=None, value="x" * 100), fmt)
        with pytest.raises(CacheDecodeError):
            decode_entry(raw[: len(raw) // 2], fmt)

    def test_pickled_non_envelope_raises_decode_error(self, fmt: CacheFormat) -> None:
        with pytest.raises(CacheDecodeError):
            decode_entry(pickle.dumps({"value": 1}), fmt)

    def test_unpicklable_value_raises_encode_error(self, fmt: CacheFormat) -> None:
        entry = CacheEntry(created_at=1, expires_at=None, value=lambda: None)
        with pytest.raises(CacheEncodeError):
            encode_entry(entry, fmt)


def test_json_payload_is_rejected_by_serialized_decoder() -> None:
    raw = encode_entry(CacheEntry(created_at=1, expires_at=None, value=1), CacheFormat.JSON)
    with pytest.raises(CacheDecodeError):
        decode_entry(raw, CacheFormat.SERIALIZE)


class TestRemoteWrapping:
    def test_decoders_are_tried_pickle_first(self) -> None:
        assert [name for name, _ in UNWRAP_ATTEMPTS] == ["string", "json"]

    def test_string_format_round_trip(self) -> None:
        raw = wrap_value({"a": (1, 2)}, RemoteFormat.STRING)
        assert pickle.loads(raw) == {"type": "string", "value": {"a": (1, 2)}}
        assert unwrap_value(raw) == {"a": (1, 2)}

    def test_json_format_decodes_text_value(self) -> None:
        raw = wrap_value('{"k": "ü"}', RemoteFormat.JSON)
        assert json.loads(raw) == {"type": "json", "value": {"k": "ü"}}
        assert unwrap_value(raw) == {"k": "ü"}

    def test_unwrap_accepts_str_payload(self) -> None:
        assert unwrap_value('{"type": "json", "value": 5}') == 5

    def test_unwrap_rejects_unknown_payload(self) -> None:
        with pytest.raises(CacheDecodeError) as exc_info:
            unwrap_value(b"plain bytes")

        assert set(exc_info.value.details["attempts"]) == {"string", "json"}

    def test_unwrap_rejects_untyped_document(self) -> None:
        with pytest.raises(CacheDecodeError):
            unwrap_value(b'{"value": 1}')
