"""Tests for battery telemetry helpers."""
import pytest

from wellcheck.analysis.battery import UNKNOWN_HEALTH, BatteryInfo, battery_fields, parse_health

TS = object()


class TestBatteryInfo:
    @pytest.mark.parametrize("level", [0, 57, 100])
    def test_valid_levels(self, level):
        assert BatteryInfo(level).level == level

    @pytest.mark.parametrize("level", [-1, 101])
    def test_level_out_of_range(self, level):
        with pytest.raises(ValueError):
            BatteryInfo(level)

    def test_unknown_health_string_rejected(self):
        with pytest.raises(ValueError):
            BatteryInfo(50, health="FINE")


class TestBatteryFields:
    def test_all_fields(self):
        fields = battery_fields(BatteryInfo(12, is_charging=True, health="OVERHEAT"), TS)
        assert fields == {
            "batteryLevel": 12,
            "isCharging": True,
            "batteryTimestamp": TS,
            "batteryHealth": "OVERHEAT",
        }

    def test_unknown_health_omitted(self):
        assert "batteryHealth" not in battery_fields(BatteryInfo(90), TS)


class TestParseHealth:
    def test_normalises_case(self):
        assert parse_health(" good ") == "GOOD"

    @pytest.mark.parametrize("value", [None, "", "melting"])
    def test_unrecognised_is_unknown(self, value):
        assert parse_health(value) == UNKNOWN_HEALTH
