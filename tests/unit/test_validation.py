"""Unit tests for payload validation and derived fields."""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from weekly_picks.exceptions import ReportValidationError
from weekly_picks.imports.validation import (
    MAX_PAYLOAD_BYTES,
    calculate_payload_size,
    declared_schema_version,
    derive_period_key,
    derive_permalink,
    is_valid_filename,
    load_json_document,
    validate_report_payload,
)

from tests.fixtures.sample_reports import make_pick, make_picks, make_report_payload, report_filename


class TestFilename:
    """Test filename convention checks."""

    @pytest.mark.parametrize("filename", ["2025-01-07report.json", "1999-12-31report.json"])
    def test_valid_filenames(self, filename):
        assert is_valid_filename(filename)

    @pytest.mark.parametrize("filename", [
        "2025-1-07report.json",
        "2025-01-07report.JSON",
        "2025-01-07-report.json",
        "report.json",
        "2025-01-07report.json.bak",
        "",
        None,
    ])
    def test_invalid_filenames(self, filename):
        assert not is_valid_filename(filename)

    def test_impossible_calendar_date_is_validation_error(self):
        with pytest.raises(ReportValidationError) as exc_info:
            validate_report_payload("2025-02-30report.json", make_report_payload())
        assert exc_info.value.category == "validation"
        assert "not a calendar date" in exc_info.value.message


class TestDerivedFields:
    """Test server-derived period key and permalink."""

    def test_period_key_is_iso_week(self):
        assert derive_period_key(date(2025, 1, 7)) == "2025-W02"
        assert derive_period_key(date(2024, 12, 30)) == "2025-W01"
        assert derive_period_key(date(2021, 1, 3)) == "2020-W53"

    def test_period_key_uses_utc(self):
        late_evening_new_york = datetime(2025, 1, 5, 23, 30, tzinfo=timezone(timedelta(hours=-5)))
        assert derive_period_key(late_evening_new_york) == "2025-W02"

    def test_naive_datetime_is_treated_as_utc(self):
        assert derive_period_key(datetime(2025, 1, 12, 23, 59)) == "2025-W02"

    def test_permalink_from_utc_date(self):
        published = datetime(2025, 1, 5, 23, 30, tzinfo=timezone(timedelta(hours=-5)))
        assert derive_permalink(published, "us-market-report") == "2025-01-06-us-market-report"


class TestValidateReportPayload:
    """Test validate_report_payload."""

    def test_valid_payload(self, sample_payload, sample_filename):
        report = validate_report_payload(sample_filename, sample_payload)

        assert report.schema_version == "v1"
        assert report.period_key == "2025-W02"
        assert report.permalink == "2025-01-07-us-market-report"
        assert report.version == "v1"
        assert report.published_at.tzinfo is not None
        assert [p.ticker for p in report.picks] == ["NVDA", "JPM", "TSLA"]

    def test_client_period_key_is_ignored(self, sample_filename):
        payload = make_report_payload(period_key="1999-W01", report_id="client-chosen")
        report = validate_report_payload(sample_filename, payload)
        assert report.period_key == "2025-W02"

    def test_default_version_comes_from_settings(self, sample_payload, sample_filename):
        report = validate_report_payload(sample_filename, sample_payload, default_version="v7")
        assert report.version == "v7"

    def test_explicit_version_wins(self, sample_filename):
        report = validate_report_payload(sample_filename, make_report_payload(version="v2"))
        assert report.version == "v2"

    def test_missing_schema_version_defaults_to_v1(self, sample_filename):
        payload = make_report_payload()
        del payload["schema_version"]
        assert declared_schema_version(payload) == "v1"
        assert validate_report_payload(sample_filename, payload).schema_version == "v1"

    def test_unknown_schema_version(self, sample_filename):
        with pytest.raises(ReportValidationError) as exc_info:
            validate_report_payload(sample_filename, make_report_payload(schema_version="v9"))
        assert "unsupported schema_version 'v9'" in exc_info.value.message

    def test_payload_must_be_object(self, sample_filename):
        with pytest.raises(ReportValidationError):
            validate_report_payload(sample_filename, ["not", "an", "object"])

    @pytest.mark.parametrize("missing", ["published_at", "title", "summary", "picks"])
    def test_required_fields(self, sample_filename, missing):
        payload = make_report_payload()
        del payload[missing]
        with pytest.raises(ReportValidationError) as exc_info:
            validate_report_payload(sample_filename, payload)
        assert missing in exc_info.value.message

    @pytest.mark.parametrize("count", [0, 6])
    def test_pick_cardinality(self, sample_filename, count):
        with pytest.raises(ReportValidationError) as exc_info:
            validate_report_payload(sample_filename, make_report_payload(picks=make_picks(count)))
        assert "picks" in exc_info.value.message

    @pytest.mark.parametrize("count", [1, 5])
    def test_pick_cardinality_bounds_accepted(self, sample_filename, count):
        report = validate_report_payload(sample_filename, make_report_payload(picks=make_picks(count)))
        assert len(report.picks) == count

    def test_repeated_ticker_and_side_rejected(self, sample_filename):
        picks = [make_pick("AAPL", "long"), make_pick("aapl", "long")]
        with pytest.raises(ReportValidationError) as exc_info:
            validate_report_payload(sample_filename, make_report_payload(picks=picks))
        assert "duplicate pick for ticker AAPL" in exc_info.value.message

    def test_same_ticker_opposite_sides_allowed(self, sample_filename):
        picks = [make_pick("AAPL", "long"), make_pick("AAPL", "short", -3)]
        report = validate_report_payload(sample_filename, make_report_payload(picks=picks))
        assert len(report.picks) == 2

    def test_invalid_side(self, sample_filename):
        with pytest.raises(ReportValidationError):
            validate_report_payload(sample_filename, make_report_payload(picks=[make_pick(side="sideways")]))

    @pytest.mark.parametrize("pct", ["1000.01", "-1000.5", "NaN"])
    def test_target_change_out_of_range(self, sample_filename, pct):
        with pytest.raises(ReportValidationError):
            validate_report_payload(sample_filename, make_report_payload(picks=[make_pick(target_change_pct=pct)]))

    def test_target_change_rounded_to_cents(self, sample_filename):
        picks = [make_pick(target_change_pct="12.345"), make_pick("MSFT", target_change_pct="-1000")]
        report = validate_report_payload(sample_filename, make_report_payload(picks=picks))
        assert report.picks[0].target_change_pct == Decimal("12.35")
        assert report.picks[1].target_change_pct == Decimal("-1000.00")

    def test_ticker_and_exchange_normalized(self, sample_filename):
        picks = [make_pick("brk.b", exchange="nyse")]
        report = validate_report_payload(sample_filename, make_report_payload(picks=picks))
        assert report.picks[0].ticker == "BRK.B"
        assert report.picks[0].exchange == "NYSE"

    def test_filename_week_must_match_published_week(self):
        with pytest.raises(ReportValidationError) as exc_info:
            validate_report_payload(report_filename("2025-01-14"), make_report_payload())
        assert "2025-W03" in exc_info.value.message
        assert "2025-W02" in exc_info.value.message

    def test_filename_in_same_week_accepted(self):
        # Monday of the same ISO week as the Tuesday publish date
        report = validate_report_payload(report_filename("2025-01-06"), make_report_payload())
        assert report.period_key == "2025-W02"

    def test_monday_report_opens_its_iso_week(self):
        payload = make_report_payload(published_at="2025-01-06T00:00:00Z")
        report = validate_report_payload("2025-01-06report.json", payload)
        assert report.period_key == "2025-W02"
        assert report.permalink == "2025-01-06-us-market-report"

    def test_sunday_filename_belongs_to_previous_week(self):
        payload = make_report_payload(published_at="2025-01-06T00:00:00Z")
        with pytest.raises(ReportValidationError) as exc_info:
            validate_report_payload("2025-01-05report.json", payload)
        assert "2025-W01" in exc_info.value.message


class TestLoadJsonDocument:
    """Test strict JSON parsing of uploaded bytes."""

    def test_parses_bytes_and_text(self):
        assert load_json_document(b'{"a": [1, 2.5]}') == {"a": [1, 2.5]}
        assert load_json_document('{"t": "é"}') == {"t": "é"}

    @pytest.mark.parametrize("document", [
        '{"x": NaN}',
        '{"x": Infinity}',
        '{"x": -Infinity}',
        '[1, NaN]',
    ])
    def test_non_finite_constants_rejected(self, document):
        with pytest.raises(ValueError):
            load_json_document(document)

    def test_invalid_utf8_rejected(self):
        with pytest.raises(ValueError):
            load_json_document(b"\xff\xfe{}")


class TestPayloadSize:
    """Test payload size measurement."""

    def test_size_is_compact_utf8_json(self):
        assert calculate_payload_size({"a": 1}) == len('{"a":1}')
        assert calculate_payload_size({"t": "é"}) == len('{"t":"é"}'.encode("utf-8"))

    def test_limit_is_five_mebibytes(self):
        assert MAX_PAYLOAD_BYTES == 5 * 1024 * 1024
