from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from school_import.models import Row

"""Import file reader.

The header is the first non-blank line; each following non-blank line becomes
one row. Cells are split on bare commas (no quoting) and trimmed.

Lines whose cell count differs from the header's are dropped without raising.
Only the dropped count is kept, for diagnostics.
"""

logger = logging.getLogger(__name__)

SUPPORTED_FORMATS = ("csv", "xlsx", "xls")
SPREADSHEET_FORMATS = ("xlsx", "xls")
PREVIEW_ROWS = 10
LARGE_FILE_ROWS = 1000
LARGE_FILE_WARNING = "Large file detected. Processing may take longer than usual."


class FormatError(Exception):
    """Raised for unsupported file formats or unparseable content."""


class IngestIOError(OSError):
    """Raised when the import file cannot be read."""


@dataclass
class CsvParseResult:
    columns: list[str]
    rows: list[Row]
    skipped_lines: int = 0


@dataclass
class IngestedFile:
    path: Path
    file_format: str
    columns: list[str]
    rows: list[Row]
    skipped_lines: int = 0
    warnings: list[str] = field(default_factory=list)
    preview_rows: int = PREVIEW_ROWS

    @property
    def preview(self) -> list[Row]:
        return self.rows[: self.preview_rows]


def detect_format(path: Path) -> str:
    """Return the lower-cased extension, rejecting formats the picker refuses.

    Raises:
        FormatError: If the extension is not one of csv/xlsx/xls
    """
    ext = path.suffix.lower().lstrip(".")
    if ext not in SUPPORTED_FORMATS:
        raise FormatError(
            f"Unsupported file format: {ext or '<none>'}. "
            f"Supported formats: {', '.join(SUPPORTED_FORMATS)}"
        )
    return ext


def _split_line(line: str) -> list[str]:
    return [token.strip() for token in line.split(",")]


def parse_csv_content(content: str) -> CsvParseResult:
    lines = [line for line in content.split("\n") if line.strip()]
    if not lines:
        return CsvParseResult(columns=[], rows=[])

    header = _split_line(lines[0])
    rows: list[Row] = []
    skipped = 0
    for line in lines[1:]:
        values = _split_line(line)
        if len(values) != len(header):
            skipped += 1
            continue
        rows.append(dict(zip(header, values)))
    if skipped:
        logger.debug("skipped %d line(s) with a cell count other than %d", skipped, len(header))
    return CsvParseResult(columns=header, rows=rows, skipped_lines=skipped)


def parse_csv(content: str) -> list[Row]:
    return parse_csv_content(content).rows


def detect_columns(rows: list[Row]) -> list[str]:
    """Column names as seen on the first row."""
    if not rows:
        return []
    return list(rows[0].keys())


def read_import_file(path: Path, preview_rows: int = PREVIEW_ROWS) -> IngestedFile:
    """Read and parse an import file.

    Args:
        path: File chosen by the operator
        preview_rows: Number of rows exposed through ``IngestedFile.preview``

    Returns:
        IngestedFile holding every parsed row and the ingest warnings

    Raises:
        FormatError: Unsupported extension, spreadsheet formats, or content
            that is not text
        IngestIOError: The file cannot be read
    """
    file_format = detect_format(path)
    if file_format in SPREADSHEET_FORMATS:
        raise FormatError("Excel file parsing requires additional library. Please use CSV format.")

    try:
        content = path.read_text(encoding="utf-8-sig")
    except UnicodeDecodeError as e:
        raise FormatError(f"Error parsing file: {e}") from e
    except OSError as e:
        raise IngestIOError(f"Error reading file: {path}: {e}") from e

    parsed = parse_csv_content(content)
    warnings = [LARGE_FILE_WARNING] if len(parsed.rows) > LARGE_FILE_ROWS else []
    logger.info(
        "read %s rows=%d columns=%d skipped_lines=%d",
        path.name, len(parsed.rows), len(parsed.columns), parsed.skipped_lines,
    )
    return IngestedFile(
        path=path,
        file_format=file_format,
        columns=detect_columns(parsed.rows) or parsed.columns,
        rows=parsed.rows,
        skipped_lines=parsed.skipped_lines,
        warnings=warnings,
        preview_rows=preview_rows,
    )
