"""CSV-backed record store: contacts, related entities, revival drafts, notification log.

Rows are addressed by 1-based data-row position, not a stable identifier; an
externally deleted row shifts every index after it.
"""

from __future__ import annotations

import csv
import logging
from dataclasses import asdict, fields
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Iterable

from models import Record, RelatedEntity

LOGGER = logging.getLogger(__name__)

RECORDS_FILE = "records.csv"
RELATED_FILE = "related_entities.csv"
DRAFTS_FILE = "dormant_drafts.csv"
NOTIFICATION_LOG_FILE = "notification_log.csv"

RECORD_COLUMNS = [f.name for f in fields(Record) if f.name != "row_index"]

RELATED_COLUMNS = [
    "base_company",
    "name",
    "category",
    "rationale",
    "priority",
    "estimated_url",
    "generated_at",
]

DRAFT_COLUMNS = [
    "generated_at",
    "company_name",
    "full_name",
    "email",
    "last_contact",
    "elapsed_days",
    "news",
    "subject",
    "body",
    "status",
]

NOTIFICATION_COLUMNS = [
    "created_at",
    "kind",
    "company",
    "person",
    "message",
    "targets",
]


class CsvRecordStore:
    """Flat, append-friendly tables under one directory."""

    def __init__(self, data_dir: str | Path) -> None:
        self.data_dir = Path(data_dir)

    # -- contacts -----------------------------------------------------------

    def read_all(self) -> list[Record]:
        return [
            Record(**{column: row.get(column) or "" for column in RECORD_COLUMNS}, row_index=index)
            for index, row in enumerate(self._read_rows(RECORDS_FILE), start=1)
        ]

    def append(self, record: Record) -> int:
        """Append one contact row and return its row index."""
        row = {column: _serialize(value) for column, value in asdict(record).items() if column in RECORD_COLUMNS}
        self._append_row(RECORDS_FILE, RECORD_COLUMNS, row)
        row_index = len(self._read_rows(RECORDS_FILE))
        LOGGER.info("Appended record row=%s company=%s", row_index, record.company_name)
        return row_index

    def update_field(self, row_index: int, column: str, value: Any) -> None:
        if column not in RECORD_COLUMNS:
            raise KeyError(f"Unknown record column: {column}")

        rows = self._read_rows(RECORDS_FILE)
        if not 1 <= row_index <= len(rows):
            raise IndexError(f"Invalid row index: {row_index}")

        rows[row_index - 1][column] = _serialize(value)
        self._write_rows(RECORDS_FILE, RECORD_COLUMNS, rows)
        LOGGER.info("Updated record row=%s column=%s", row_index, column)

    # -- side tables --------------------------------------------------------

    def append_related(
        self, base_company: str, entities: Iterable[RelatedEntity], generated_at: datetime | None = None
    ) -> int:
        stamp = _serialize(generated_at or datetime.now(UTC))
        count = 0
        for entity in entities:
            self._append_row(
                RELATED_FILE,
                RELATED_COLUMNS,
                {
                    "base_company": base_company,
                    "name": entity.name,
                    "category": entity.category,
                    "rationale": entity.rationale,
                    "priority": entity.priority,
                    "estimated_url": entity.estimated_url,
                    "generated_at": stamp,
                },
            )
            count += 1
        if count:
            LOGGER.info("Wrote %s related entities for company=%s", count, base_company)
        return count

    def append_draft(
        self,
        record: Record,
        elapsed_days: int,
        news: str,
        subject: str,
        body: str,
        generated_at: datetime | None = None,
        status: str = "下書き",
    ) -> None:
        self._append_row(
            DRAFTS_FILE,
            DRAFT_COLUMNS,
            {
                "generated_at": _serialize(generated_at or datetime.now(UTC)),
                "company_name": record.company_name,
                "full_name": record.full_name,
                "email": record.email,
                "last_contact": _serialize(record.last_contact),
                "elapsed_days": elapsed_days,
                "news": news,
                "subject": subject,
                "body": body,
                "status": status,
            },
        )

    def append_notification(
        self, kind: str, company: str, person: str, message: str, targets: list[str], created_at: datetime
    ) -> None:
        self._append_row(
            NOTIFICATION_LOG_FILE,
            NOTIFICATION_COLUMNS,
            {
                "created_at": _serialize(created_at),
                "kind": kind,
                "company": company,
                "person": person,
                "message": message,
                "targets": ", ".join(targets),
            },
        )

    def read_related(self) -> list[dict[str, str]]:
        return self._read_rows(RELATED_FILE)

    def read_drafts(self) -> list[dict[str, str]]:
        return self._read_rows(DRAFTS_FILE)

    def read_notifications(self) -> list[dict[str, str]]:
        """Newest first."""
        return list(reversed(self._read_rows(NOTIFICATION_LOG_FILE)))

    # -- csv plumbing -------------------------------------------------------

    def _path(self, name: str) -> Path:
        return self.data_dir / name

    def _read_rows(self, name: str) -> list[dict[str, str]]:
        path = self._path(name)
        if not path.exists():
            return []
        with path.open(newline="", encoding="utf-8") as fh:
            return list(csv.DictReader(fh))

    def _append_row(self, name: str, columns: list[str], row: dict[str, Any]) -> None:
        path = self._path(name)
        path.parent.mkdir(parents=True, exist_ok=True)
        write_header = not path.exists() or path.stat().st_size == 0
        with path.open("a", newline="", encoding="utf-8") as fh:
            writer = csv.DictWriter(fh, fieldnames=columns)
            if write_header:
                writer.writeheader()
            writer.writerow(row)

    def _write_rows(self, name: str, columns: list[str], rows: list[dict[str, Any]]) -> None:
        path = self._path(name)
        with path.open("w", newline="", encoding="utf-8") as fh:
            writer = csv.DictWriter(fh, fieldnames=columns, extrasaction="ignore")
            writer.writeheader()
            writer.writerows(rows)


def _serialize(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.isoformat()
    return value
