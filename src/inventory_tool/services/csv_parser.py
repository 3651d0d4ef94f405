"""CSV file decoding and parsing into a header/row table"""
import csv
import io
import logging
import os
from dataclasses import dataclass, field
from typing import Dict, List, Tuple

from src.inventory_tool.services.errors import FileValidationError

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = (".csv", ".txt", ".tsv")
ALLOWED_DELIMITERS = [",", ";", "\t", "|"]
ENCODINGS = ["utf-8-sig", "cp1252"]


@dataclass
class ParsedTable:
    headers: List[str]
    rows: List[Dict[str, str]] = field(default_factory=list)
    delimiter: str = ","
    encoding: str = "utf-8"

    @property
    def total_rows(self) -> int:
        return len(self.rows)


def validate_upload(file_name: str, size: int, max_bytes: int) -> List[str]:
    errors = []
    extension = os.path.splitext(file_name or "")[1].lower()
    if extension not in SUPPORTED_EXTENSIONS:
        errors.append(f"Unsupported file type '{extension or file_name}'. Use CSV, TXT or TSV files")
    if size == 0:
        errors.append("The file is empty")
    elif size > max_bytes:
        errors.append(f"The file is too large (limit: {max_bytes // (1024 * 1024)}MB)")
    return errors


def decode_csv_content(content: bytes) -> Tuple[str, str]:
    for encoding in ENCODINGS:
        try:
            return content.decode(encoding), encoding
        except (UnicodeDecodeError, LookupError):
            continue
    raise FileValidationError(["Unable to decode CSV file. Supported encodings: UTF-8, Windows-1252"])


def detect_delimiter(text: str) -> str:
    first_line = next((line for line in text.splitlines() if line.strip()), "")
    counts = {delimiter: first_line.count(delimiter) for delimiter in ALLOWED_DELIMITERS}
    best = max(ALLOWED_DELIMITERS, key=lambda d: counts[d])
    return best if counts[best] > 0 else ","


def _unique_headers(raw_headers: List[str]) -> List[str]:
    headers = []
    seen: Dict[str, int] = {}
    for idx, raw in enumerate(raw_headers):
        header = raw.strip() or f"Column {idx + 1}"
        if header in seen:
            seen[header] += 1
            header = f"{header} ({seen[header]})"
        else:
            seen[header] = 1
        headers.append(header)
    return headers


def parse_csv_text(text: str, encoding: str = "utf-8") -> ParsedTable:
    delimiter = detect_delimiter(text)
    reader = csv.reader(io.StringIO(text), delimiter=delimiter)

    try:
        records = [row for row in reader if any(cell.strip() for cell in row)]
    except csv.Error as e:
        raise FileValidationError([f"Failed to parse CSV: {e}"])

    if not records:
        raise FileValidationError(["The CSV file is empty"])

    headers = _unique_headers(records[0])
    rows = []
    for line_no, record in enumerate(records[1:], start=2):
        if len(record) > len(headers):
            logger.warning(f"Row {line_no} has {len(record)} cells but only {len(headers)} headers; extra cells ignored")
        cells = [cell.strip() for cell in record[:len(headers)]]
        cells += [""] * (len(headers) - len(cells))
        rows.append(dict(zip(headers, cells)))

    return ParsedTable(headers=headers, rows=rows, delimiter=delimiter, encoding=encoding)


def parse_csv(content: bytes, file_name: str, max_bytes: int) -> ParsedTable:
    errors = validate_upload(file_name, len(content), max_bytes)
    if errors:
        raise FileValidationError(errors)

    text, encoding = decode_csv_content(content)
    table = parse_csv_text(text, encoding)
    logger.info(
        f"Parsed {file_name}: {len(table.headers)} columns, {table.total_rows} rows, "
        f"delimiter={table.delimiter!r}, encoding={encoding}"
    )
    return table
