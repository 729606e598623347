"""Tests for Socrata date normalisation and IUCR code descriptions."""

import pytest

from stacc.services.dates import format_date
from stacc.services.iucr_codes import IUCR_DESCRIPTIONS, UNKNOWN_DESCRIPTION, describe_iucr


class TestFormatDate:
    def test_summer_timestamp_renders_cdt(self):
        assert format_date("2023-07-04T21:15:00.000") == "2023/07/04 16:15:00 CDT"

    def test_winter_timestamp_renders_cst(self):
        assert format_date("2023-01-15T06:00:00.000") == "2023/01/15 00:00:00 CST"

    def test_fractional_seconds_are_optional(self):
        assert format_date("2023-07-04T21:15:00") == "2023/07/04 16:15:00 CDT"

    def test_conversion_can_cross_midnight(self):
        assert format_date("2023-07-05T02:00:00.000") == "2023/07/04 21:00:00 CDT"

    @pytest.mark.parametrize("raw", ["", "not a date", "07/04/2023"])
    def test_unparseable_input_is_returned_unchanged(self, raw):
        assert format_date(raw) == raw

    def test_canonical_strings_sort_chronologically(self):
        raws = [
            "2023-11-05T05:30:00.000",
            "2022-12-31T23:59:59.000",
            "2023-03-12T09:00:00.000",
        ]
        formatted = [format_date(r) for r in raws]
        assert sorted(formatted) == [format_date(r) for r in sorted(raws)]


class TestDescribeIucr:
    def test_known_code(self):
        assert describe_iucr("0110") == "HOMICIDE FIRST DEGREE MURDER"

    def test_alphanumeric_code_is_case_insensitive(self):
        assert describe_iucr("041a") == "BATTERY AGGRAVATED: HANDGUN"

    def test_dropped_leading_zero_is_padded(self):
        assert describe_iucr("910") == "MOTOR VEHICLE THEFT AUTOMOBILE"

    @pytest.mark.parametrize("code", [None, "", "ZZZZ", "99999"])
    def test_unknown_codes(self, code):
        assert describe_iucr(code) == UNKNOWN_DESCRIPTION

    def test_table_is_read_only(self):
        with pytest.raises(TypeError):
            IUCR_DESCRIPTIONS["0110"] = "SOMETHING ELSE"
