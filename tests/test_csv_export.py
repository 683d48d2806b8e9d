"""
tests/test_csv_export.py

Pytest unit tests for the CSV export.

Coverage
--------
- Dynamic office columns sized by the widest office per position
- Cell formatting: list joining and de-duplication, None, quoting
- Payload framing: BOM, LF separators, no trailing newline
- File names for complete and partial exports
- Directory sink and data URI fallback
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from doctor_scraper.domain.doctor import DoctorRecord, Office
from doctor_scraper.scraping.errors import ExportError
from doctor_scraper.scraping.export import (
    BASE_COLUMNS,
    CsvExporter,
    DirectoryExportSink,
    build_csv,
    build_csv_table,
    build_export_filename,
    decode_data_uri,
    format_value,
    render_csv,
    to_data_uri,
)
from fakes import RecordingSink

FIXED_NOW = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


@pytest.fixture()
def records() -> list[DoctorRecord]:
    return [
        DoctorRecord(
            url="https://nobat.ir/doctor/1",
            name="دکتر علی",
            phones=("021-1", "021-2"),
            offices=(
                Office(city="تهران", addresses=("آدرس الف", "آدرس ب"), phones=("021-1",)),
                Office(city="کرج", addresses=("آدرس ج",)),
            ),
        ),
        DoctorRecord(
            url="https://nobat.ir/doctor/2",
            name="دکتر سارا",
            offices=(Office(city="شیراز", addresses=("آدرس د",), phones=("071-1", "071-2")),),
        ),
        DoctorRecord.placeholder("https://nobat.ir/doctor/3", "Timed out"),
    ]


# ---------------------------------------------------------------------------
# Table layout
# ---------------------------------------------------------------------------


class TestCsvTable:
    def test_office_columns_follow_widest_office(self, records: list[DoctorRecord]) -> None:
        table = build_csv_table(records)
        assert table.fields == [
            *BASE_COLUMNS,
            "Office 1 City",
            "Office 1 Address 1",
            "Office 1 Address 2",
            "Office 1 Phone 1",
            "Office 1 Phone 2",
            "Office 2 City",
            "Office 2 Address 1",
        ]

    def test_rows_fill_only_their_own_cells(self, records: list[DoctorRecord]) -> None:
        rows = build_csv_table(records).rows
        assert rows[0]["Phones"] == "021-1; 021-2"
        assert rows[0]["Office 2 City"] == "کرج"
        assert rows[1]["Office 1 Phone 2"] == "071-2"
        assert "Office 2 City" not in rows[1]
        assert rows[2]["Error"] == "Timed out"

    def test_no_offices_means_base_columns_only(self) -> None:
        table = build_csv_table([DoctorRecord(url="https://nobat.ir/doctor/1")])
        assert table.fields == list(BASE_COLUMNS)

    def test_format_value(self) -> None:
        assert format_value(["a", " a ", "", None, "b"]) == "a; b"
        assert format_value(None) == ""
        assert format_value("  x ") == "x"


# ---------------------------------------------------------------------------
# Payload
# ---------------------------------------------------------------------------


class TestPayload:
    def test_bom_and_line_separators(self, records: list[DoctorRecord]) -> None:
        payload = build_csv(records)
        assert payload.startswith(b"\xef\xbb\xbf")
        text = payload.decode("utf-8-sig")
        assert not text.endswith("\n")
        assert "\r" not in text
        assert len(text.split("\n")) == 4

    def test_missing_cells_are_empty(self, records: list[DoctorRecord]) -> None:
        lines = render_csv(build_csv_table(records)).split("\n")
        assert lines[3] == "https://nobat.ir/doctor/3,,,,,,,Timed out,,,,,,,"

    def test_quotes_values_with_commas_and_quotes(self) -> None:
        record = DoctorRecord(url="https://nobat.ir/doctor/1", name='Dr "Ali", MD')
        lines = render_csv(build_csv_table([record])).split("\n")
        assert lines[1] == 'https://nobat.ir/doctor/1,"Dr ""Ali"", MD",,,,,,'

    def test_data_uri_carries_the_same_bytes(self, records: list[DoctorRecord]) -> None:
        payload = build_csv(records)
        uri = to_data_uri(payload)
        assert uri.startswith("data:text/csv;charset=utf-8;base64,")
        assert decode_data_uri(uri) == payload

    def test_rejects_non_base64_data_uri(self) -> None:
        with pytest.raises(ValueError):
            decode_data_uri("data:text/csv,plain")


class TestFilename:
    def test_complete_and_partial_names(self) -> None:
        assert build_export_filename(partial=False, now=FIXED_NOW) == "nobat-doctors-2024-01-02-03-04-05.csv"
        assert build_export_filename(partial=True, now=FIXED_NOW) == "nobat-doctors-partial-2024-01-02-03-04-05.csv"

    def test_timestamp_is_utc(self) -> None:
        tehran = timezone(timedelta(hours=3, minutes=30))
        now = datetime(2024, 1, 2, 6, 34, 5, tzinfo=tehran)
        assert build_export_filename(partial=False, now=now) == "nobat-doctors-2024-01-02-03-04-05.csv"


# ---------------------------------------------------------------------------
# Sinks and exporter
# ---------------------------------------------------------------------------


class TestExporter:
    def test_directory_sink_writes_file(self, tmp_path, records: list[DoctorRecord]) -> None:
        location = CsvExporter(DirectoryExportSink(tmp_path / "out")).export(records, partial=False, now=FIXED_NOW)

        written = tmp_path / "out" / "nobat-doctors-2024-01-02-03-04-05.csv"
        assert location == str(written)
        assert written.read_bytes() == build_csv(records)

    def test_directory_sink_keeps_files_inside_directory(self, tmp_path) -> None:
        location = DirectoryExportSink(tmp_path).save_bytes("../escape.csv", b"x")
        assert location == str(tmp_path / "escape.csv")

    def test_falls_back_to_data_uri(self, records: list[DoctorRecord]) -> None:
        sink = RecordingSink(fail_bytes=True)
        location = CsvExporter(sink).export(records, partial=True, now=FIXED_NOW)

        assert location == "data://nobat-doctors-partial-2024-01-02-03-04-05.csv"
        (uri,) = sink.uris.values()
        assert decode_data_uri(uri) == build_csv(records)

    def test_double_failure_raises_export_error(self, records: list[DoctorRecord]) -> None:
        sink = RecordingSink(fail_bytes=True, fail_uri=True)
        with pytest.raises(ExportError, match="download blocked"):
            CsvExporter(sink).export(records, partial=False, now=FIXED_NOW)
