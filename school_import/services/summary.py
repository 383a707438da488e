from __future__ import annotations

from collections.abc import Sequence

from school_import.models import BulkImportResult, ValidationIssue

"""Summary and review rendering for a finished import.

SUMMARY line format:

    SUMMARY operation=<id> total=<n> success=<s> failed=<f> chunks=<c> elapsed_sec=<e>

The review lists at most ``limit`` errors followed by ``+N more``.
"""

REVIEW_ERROR_LIMIT = 10


def _format_seconds(value: float) -> str:
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if value < 0.01:
        # avoid scientific notation for very small numbers
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return f"{value:.2f}".rstrip("0").rstrip(".")


def render_summary_line(result: BulkImportResult) -> str:
    """Render the SUMMARY line for ``result``.

    Examples:
        >>> from school_import.models import BulkImportResult
        >>> r = BulkImportResult(total_records=2, successful_records=2, failed_records=0,
        ...                      errors=[], operation_id=7, total_chunks=2, elapsed_seconds=1.5)
        >>> render_summary_line(r)
        'SUMMARY operation=7 total=2 success=2 failed=0 chunks=2 elapsed_sec=1.5'
    """
    line = (
        f"SUMMARY operation={result.operation_id} "
        f"total={result.total_records} "
        f"success={result.successful_records} "
        f"failed={result.failed_records} "
        f"chunks={result.total_chunks} "
        f"elapsed_sec={_format_seconds(result.elapsed_seconds)}"
    )
    if result.cancelled:
        line += f" cancelled=1 next_chunk={result.next_chunk}"
    return line


def format_issue(issue: ValidationIssue) -> str:
    return f"row {issue.row} [{issue.field}]: {issue.message}"


def render_error_list(errors: Sequence[ValidationIssue], limit: int = REVIEW_ERROR_LIMIT) -> list[str]:
    lines = [format_issue(e) for e in errors[:limit]]
    if len(errors) > limit:
        lines.append(f"+{len(errors) - limit} more")
    return lines
