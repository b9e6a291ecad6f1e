"""Tests for Firestore typed-value encoding."""
from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from wellcheck.remote.codec import (
    SERVER_TIMESTAMP,
    decode_fields,
    decode_value,
    encode_fields,
    encode_value,
    nest_field_paths,
)

SEOUL = ZoneInfo("Asia/Seoul")


class TestEncodeValue:
    @pytest.mark.parametrize("value,expected", [
        (None, {"nullValue": None}),
        (True, {"booleanValue": True}),
        (3, {"integerValue": "3"}),
        (1.5, {"doubleValue": 1.5}),
        ("김철수", {"stringValue": "김철수"}),
    ])
    def test_scalars(self, value, expected):
        assert encode_value(value) == expected

    def test_bool_is_not_encoded_as_integer(self):
        assert "booleanValue" in encode_value(False)

    def test_naive_datetime_uses_given_zone(self):
        encoded = encode_value(datetime(2025, 1, 6, 9, 0), SEOUL)
        assert encoded == {"timestampValue": "2025-01-06T09:00:00+09:00"}

    def test_naive_datetime_defaults_to_utc(self):
        encoded = encode_value(datetime(2025, 1, 6, 9, 0))
        assert encoded == {"timestampValue": "2025-01-06T09:00:00+00:00"}

    def test_date_is_a_string(self):
        assert encode_value(date(2025, 1, 6)) == {"stringValue": "2025-01-06"}

    def test_nested_map_and_array(self):
        encoded = encode_value({"meals": [1, "a"]})
        assert encoded == {
            "mapValue": {"fields": {
                "meals": {"arrayValue": {"values": [{"integerValue": "1"}, {"stringValue": "a"}]}},
            }},
        }

    def test_sentinel_is_not_encodable(self):
        with pytest.raises(TypeError):
            encode_value(SERVER_TIMESTAMP)


class TestDecodeValue:
    def test_timestamp_with_nanoseconds(self):
        value = decode_value({"timestampValue": "2025-01-06T00:00:00.123456789Z"})
        assert value == datetime(2025, 1, 6, 0, 0, 0, 123456, tzinfo=timezone.utc)

    def test_integer_string(self):
        assert decode_value({"integerValue": "42"}) == 42

    def test_map_without_fields(self):
        assert decode_value({"mapValue": {}}) == {}

    def test_unknown_type(self):
        with pytest.raises(ValueError):
            decode_value({"bytesValue": "AAAA"})

    def test_fields_roundtrip_keeps_types(self):
        fields = {"elderlyName": "김말자", "todayMealCount": 2, "approved": True}
        assert decode_fields(encode_fields(fields)) == fields


class TestNestFieldPaths:
    def test_dotted_paths_become_maps(self):
        nested = nest_field_paths({
            "location.latitude": 37.5,
            "location.longitude": 127.0,
            "lastActivityType": "unlock",
        })
        assert nested == {
            "location": {"latitude": 37.5, "longitude": 127.0},
            "lastActivityType": "unlock",
        }

    def test_deep_paths(self):
        assert nest_field_paths({"alerts.survival.active": True}) == {"alerts": {"survival": {"active": True}}}
