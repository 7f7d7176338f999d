"""Study export rendering — flat CSV and JSON, one row per (survey, question) pair.

Survey-level fields repeat on every row so each row stands alone in a spreadsheet.
Renderers are generators so exports stream instead of building the whole body.
"""

import csv
import io
import json
from collections.abc import Iterable, Iterator
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any

from app.services.answers import answer_to_text

CSV_COLUMNS = [
    "survey_id",
    "patient_id",
    "study_id",
    "completed_at",
    "question_id",
    "question_text",
    "answer",
    "response_type",
]


@dataclass
class ExportRow:
    survey_id: str
    patient_id: str
    study_id: str
    completed_at: datetime | None
    question_id: int
    question_text: str
    answer: Any
    response_type: str

    def as_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["completed_at"] = self.completed_at.isoformat() if self.completed_at else None
        return data

    def as_csv_row(self) -> list[str]:
        data = self.as_dict()
        data["answer"] = answer_to_text(self.answer)
        return ["" if data[column] is None else str(data[column]) for column in CSV_COLUMNS]


def _drain(buffer: io.StringIO) -> str:
    value = buffer.getvalue()
    buffer.seek(0)
    buffer.truncate(0)
    return value


def render_csv(rows: Iterable[ExportRow]) -> Iterator[str]:
    """Yield CSV text: a header line, then one line per row. Every cell is quoted."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL)

    writer.writerow(CSV_COLUMNS)
    yield _drain(buffer)

    for row in rows:
        writer.writerow(row.as_csv_row())
        yield _drain(buffer)


def render_json(rows: Iterable[ExportRow]) -> Iterator[str]:
    """Yield a JSON array of rows with answers kept as native JSON values."""
    yield "["
    for i, row in enumerate(rows):
        prefix = "," if i else ""
        yield prefix + json.dumps(row.as_dict(), ensure_ascii=False)
    yield "]"
