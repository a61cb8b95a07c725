import csv
import io
import json
import logging
from typing import Any, Dict, Iterable, List, NamedTuple, Union
import pandas as pd

from .models import FieldError, IngestResult, IngestSummary, Lead
from .validator import DEFAULT_TAG_SEPARATOR, validate_row


logger = logging.getLogger("buyer_intake.ingest")

MAX_ROWS = 200

CSV_COLUMNS = [
    "fullName",
    "email",
    "phone",
    "city",
    "propertyType",
    "bhk",
    "purpose",
    "budgetMin",
    "budgetMax",
    "timeline",
    "source",
    "notes",
    "tags",
    "status",
]


class CSVParseError(ValueError):
    pass


class CSVTable(NamedTuple):
    columns: List[str]
    rows: List[Dict[str, str]]
    # 1-indexed data row -> field count, for rows wider than the header
    overlong: Dict[int, int]


def _records(raw: Union[str, bytes]) -> List[List[str]]:
    text = raw.decode("utf-8-sig") if isinstance(raw, bytes) else raw.lstrip("\ufeff")
    reader = csv.reader(io.StringIO(text, newline=""), strict=True)
    return [record for record in reader if record]


def parse_csv(raw: Union[str, bytes]) -> CSVTable:
    """Split CSV text into row mappings keyed by header, in source order.

    Every cell is read as text. Short rows are padded with empty strings;
    rows with more fields than the header keep their position and are
    listed in ``overlong`` instead of being shifted into other columns.
    """
    records = _records(raw)
    if not records:
        raise CSVParseError("No columns to parse from file")
    columns = [c.strip() for c in records[0]]
    width = len(columns)
    body = records[1:]
    overlong = {i: len(r) for i, r in enumerate(body, start=1) if len(r) > width}
    frame = pd.DataFrame([r[:width] + [""] * (width - len(r)) for r in body], columns=columns)
    return CSVTable(columns=columns, rows=frame.to_dict(orient="records"), overlong=overlong)


def _file_error(field: str, message: str, value: Any, rows_in: int = 0) -> IngestResult:
    error = FieldError(row="File", field=field, message=message, value=value)
    return IngestResult(
        rejected_rows=[error],
        summary=IngestSummary(rows_in=rows_in, accepted=0, rejected=rows_in, errors=1),
    )


def validate_rows(table: CSVTable, tag_separator: str = DEFAULT_TAG_SEPARATOR) -> IngestResult:
    accepted: List[Lead] = []
    rejected: List[FieldError] = []
    bad_rows = 0
    for index, row in enumerate(table.rows, start=1):
        if index in table.overlong:
            bad_rows += 1
            found = table.overlong[index]
            rejected.append(FieldError(
                row=index,
                field="row",
                message=f"Expected {len(table.columns)} fields, found {found}",
                value=found,
            ))
            continue
        outcome = validate_row(row, row=index, tag_separator=tag_separator)
        if outcome.lead is not None:
            accepted.append(outcome.lead)
        else:
            bad_rows += 1
            rejected.extend(outcome.errors)
    summary = IngestSummary(rows_in=len(table.rows), accepted=len(accepted), rejected=bad_rows, errors=len(rejected))
    return IngestResult(accepted_rows=accepted, rejected_rows=rejected, summary=summary)


def ingest(raw: Union[str, bytes], max_rows: int = MAX_ROWS, tag_separator: str = DEFAULT_TAG_SEPARATOR) -> IngestResult:
    try:
        table = parse_csv(raw)
    except (csv.Error, CSVParseError, UnicodeDecodeError) as e:
        logger.info(json.dumps({"event": "ingest_parse_failed", "error": str(e)}))
        return _file_error("parse", "Failed to parse CSV file", str(e))
    rows_in = len(table.rows)
    if rows_in > max_rows:
        logger.info(json.dumps({"event": "ingest_too_large", "rows_in": rows_in, "max_rows": max_rows}))
        return _file_error("size", f"Maximum {max_rows} rows allowed", rows_in, rows_in=rows_in)
    result = validate_rows(table, tag_separator=tag_separator)
    logger.info(json.dumps({"event": "ingest", **result.summary.model_dump()}))
    return result


async def ingest_upload(upload: Any, max_rows: int = MAX_ROWS, tag_separator: str = DEFAULT_TAG_SEPARATOR) -> IngestResult:
    content = await upload.read()
    return ingest(content, max_rows=max_rows, tag_separator=tag_separator)


def lead_to_csv_row(lead: Lead, tag_separator: str = DEFAULT_TAG_SEPARATOR) -> Dict[str, Any]:
    data = lead.model_dump(by_alias=True)
    row = {col: ("" if data.get(col) is None else data.get(col)) for col in CSV_COLUMNS}
    row["tags"] = tag_separator.join(lead.tags)
    return row


def export_csv(leads: Iterable[Lead], tag_separator: str = DEFAULT_TAG_SEPARATOR) -> str:
    rows = [lead_to_csv_row(l, tag_separator) for l in leads]
    df = pd.DataFrame(rows, columns=CSV_COLUMNS)
    buf = io.StringIO()
    df.to_csv(buf, index=False)
    return buf.getvalue()
