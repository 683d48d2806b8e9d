"""
CSV export of scraped doctor records.

Layout
------
Base columns come first (``Profile URL`` .. ``Error``). Offices are then
spread over dynamic columns per office position ``i``:

    Office i City, Office i Address 1..A(i), Office i Phone 1..P(i)

where A(i) and P(i) are the largest address/phone counts seen at position
``i`` across the whole result set, so every row has the same width.

The payload is UTF-8 with a byte-order mark and ``\\n`` row separators.
Sinks receive either the raw bytes or, as a fallback, a base64 ``data:``
URI of the very same bytes.
"""

from __future__ import annotations

import base64
import csv
import io
import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from doctor_scraper.domain.doctor import DoctorRecord
from doctor_scraper.scraping.errors import ExportError
from doctor_scraper.scraping.logging_utils import log_event

logger = logging.getLogger(__name__)

BASE_COLUMNS = (
    "Profile URL",
    "Name",
    "Specialty",
    "Code",
    "City",
    "Addresses",
    "Phones",
    "Error",
)
LIST_SEPARATOR = "; "
UTF8_BOM = "\ufeff"
CSV_MEDIA_TYPE = "text/csv;charset=utf-8"
FILENAME_PREFIX = "nobat-doctors"
PARTIAL_FILENAME_PREFIX = "nobat-doctors-partial"


# ---------------------------------------------------------------------------
# Table building
# ---------------------------------------------------------------------------


@dataclass
class CsvTable:
    """
    Flat rows plus the ordered column list used as the CSV header.
    """

    rows: list[dict[str, str]] = field(default_factory=list)
    fields: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class OfficeSlot:
    position: int
    addresses: int
    phones: int

    @property
    def city_column(self) -> str:
        return f"Office {self.position} City"

    def address_column(self, index: int) -> str:
        return f"Office {self.position} Address {index}"

    def phone_column(self, index: int) -> str:
        return f"Office {self.position} Phone {index}"

    def columns(self) -> list[str]:
        return [
            self.city_column,
            *(self.address_column(index) for index in range(1, self.addresses + 1)),
            *(self.phone_column(index) for index in range(1, self.phones + 1)),
        ]


def format_value(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        unique: dict[str, None] = {}
        for item in value:
            text = str(item or "").strip()
            if text:
                unique.setdefault(text, None)
        return LIST_SEPARATOR.join(unique)
    if value is None:
        return ""
    return str(value).strip()


def office_slots(records: Iterable[DoctorRecord]) -> list[OfficeSlot]:
    """
    Widest address and phone counts per office position across `records`.
    """

    address_counts: list[int] = []
    phone_counts: list[int] = []
    for record in records:
        for index, office in enumerate(record.offices):
            if index >= len(address_counts):
                address_counts.append(0)
                phone_counts.append(0)
            address_counts[index] = max(address_counts[index], len(office.addresses))
            phone_counts[index] = max(phone_counts[index], len(office.phones))
    return [
        OfficeSlot(position=index + 1, addresses=addresses, phones=phones)
        for index, (addresses, phones) in enumerate(zip(address_counts, phone_counts))
    ]


def build_csv_table(records: Sequence[DoctorRecord]) -> CsvTable:
    slots = office_slots(records)
    fields = list(BASE_COLUMNS)
    for slot in slots:
        fields.extend(slot.columns())

    rows: list[dict[str, str]] = []
    for record in records:
        row = {
            "Profile URL": format_value(record.url),
            "Name": format_value(record.name),
            "Specialty": format_value(record.specialty),
            "Code": format_value(record.code),
            "City": format_value(record.city),
            "Addresses": format_value(record.addresses),
            "Phones": format_value(record.phones),
            "Error": format_value(record.error),
        }
        for slot, office in zip(slots, record.offices):
            row[slot.city_column] = format_value(office.city)
            for index, address in enumerate(office.addresses, start=1):
                row[slot.address_column(index)] = format_value(address)
            for index, phone in enumerate(office.phones, start=1):
                row[slot.phone_column(index)] = format_value(phone)
        rows.append(row)
    return CsvTable(rows=rows, fields=fields)


def render_csv(table: CsvTable) -> str:
    buffer = io.StringIO()
    writer = csv.DictWriter(
        buffer,
        fieldnames=table.fields,
        extrasaction="ignore",
        restval="",
        quoting=csv.QUOTE_MINIMAL,
        lineterminator="\n",
    )
    writer.writeheader()
    writer.writerows(table.rows)
    return buffer.getvalue().rstrip("\n")


def build_csv(records: Sequence[DoctorRecord]) -> bytes:
    """
    Encoded CSV payload (BOM included) for `records`.
    """

    return (UTF8_BOM + render_csv(build_csv_table(records))).encode("utf-8")


def build_export_filename(*, partial: bool, now: datetime | None = None) -> str:
    moment = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    prefix = PARTIAL_FILENAME_PREFIX if partial else FILENAME_PREFIX
    return f"{prefix}-{moment.strftime('%Y-%m-%d-%H-%M-%S')}.csv"


def to_data_uri(payload: bytes) -> str:
    return f"data:{CSV_MEDIA_TYPE};base64,{base64.b64encode(payload).decode('ascii')}"


def decode_data_uri(uri: str) -> bytes:
    header, separator, data = uri.partition(",")
    if not separator or not header.startswith("data:") or not header.endswith(";base64"):
        raise ValueError("Unsupported data URI.")
    return base64.b64decode(data, validate=True)


# ---------------------------------------------------------------------------
# Sinks
# ---------------------------------------------------------------------------


class ExportSink(ABC):
    """
    Destination for export payloads.
    """

    @abstractmethod
    def save_bytes(self, filename: str, payload: bytes) -> str:
        """
        Persist raw bytes and return where they were written.
        """

    @abstractmethod
    def save_data_uri(self, filename: str, uri: str) -> str:
        """
        Persist the content of a base64 data URI and return where it was written.
        """


class DirectoryExportSink(ExportSink):
    """
    Writes export files into a local directory.
    """

    def __init__(self, directory: str | Path) -> None:
        self._directory = Path(directory)

    def _target(self, filename: str) -> Path:
        self._directory.mkdir(parents=True, exist_ok=True)
        return self._directory / Path(filename).name

    def save_bytes(self, filename: str, payload: bytes) -> str:
        target = self._target(filename)
        target.write_bytes(payload)
        return str(target)

    def save_data_uri(self, filename: str, uri: str) -> str:
        return self.save_bytes(filename, decode_data_uri(uri))


class CsvExporter:
    """
    Renders records and hands them to a sink, falling back to the data URI
    path when the primary write fails.
    """

    def __init__(self, sink: ExportSink) -> None:
        self._sink = sink

    def export(
        self,
        records: Sequence[DoctorRecord],
        *,
        partial: bool,
        now: datetime | None = None,
    ) -> str:
        filename = build_export_filename(partial=partial, now=now)
        payload = build_csv(records)

        try:
            location = self._sink.save_bytes(filename, payload)
        except Exception as primary_exc:
            log_event(
                logger,
                logging.WARNING,
                "csv_primary_export_failed",
                filename=filename,
                error=str(primary_exc),
            )
            try:
                location = self._sink.save_data_uri(filename, to_data_uri(payload))
            except Exception as exc:
                raise ExportError(str(exc) or exc.__class__.__name__) from exc

        log_event(
            logger,
            logging.INFO,
            "csv_exported",
            filename=filename,
            location=location,
            rows=len(records),
            partial=partial,
        )
        return location
