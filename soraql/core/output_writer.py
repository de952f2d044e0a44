"""Rendering of query results (table, csv, json) and file export."""
from __future__ import annotations
import csv
import io
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

from soraql.core.models import ResultTable
from soraql.utils.constants import NUMERIC_COLUMN_THRESHOLD, SUPPORTED_EXPORT_FORMATS
from soraql.utils.string_utils import display_width, pad_left, pad_right

logger = logging.getLogger(__name__)

NO_RESULTS = "No results found."
_MISSING = object()


def _is_number(val: Any) -> bool:
    return isinstance(val, (int, float)) and not isinstance(val, bool)


def format_value(val: Any) -> str:
    if val is None:
        return "NULL"
    if isinstance(val, str):
        return val
    if isinstance(val, bool):
        return "true" if val else "false"
    if isinstance(val, float):
        if val.is_integer():
            return f"{val:.0f}"
        return f"{val:.2f}"
    if isinstance(val, int):
        return str(val)
    return str(val)


def is_numeric_column(column: str, rows: Sequence[Mapping[str, Any]],
                      threshold: float = NUMERIC_COLUMN_THRESHOLD) -> bool:
    """True when more than `threshold` of the present, non-null values are numbers."""
    total = 0
    numeric = 0
    for row in rows:
        val = row.get(column)
        if val is None:
            continue
        total += 1
        if _is_number(val):
            numeric += 1
    return total > 0 and numeric / total > threshold


def _cell(row: Mapping[str, Any], column: str) -> str:
    val = row.get(column, _MISSING)
    return '' if val is _MISSING else format_value(val)


def _border(left: str, mid: str, right: str, widths: List[int]) -> str:
    return left + mid.join('─' * (w + 2) for w in widths) + right


def render_table(table: ResultTable) -> str:
    columns = list(table.columns)
    numeric = [is_numeric_column(c, table.rows) for c in columns]
    cells = [[_cell(row, c) for c in columns] for row in table.rows]
    widths = [display_width(c) for c in columns]
    for values in cells:
        for i, v in enumerate(values):
            widths[i] = max(widths[i], display_width(v))

    def line(values: List[str]) -> str:
        parts = []
        for v, w, num in zip(values, widths, numeric):
            parts.append(' ' + (pad_left(v, w) if num else pad_right(v, w)) + ' ')
        return '│' + '│'.join(parts) + '│'

    out = [_border('┌', '┬', '┐', widths), line(columns), _border('├', '┼', '┤', widths)]
    out.extend(line(values) for values in cells)
    out.append(_border('└', '┴', '┘', widths))
    out.append('')
    out.append(f"({len(table.rows)} rows)")
    return '\n'.join(out)


def render_csv(table: ResultTable) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator='\n')
    writer.writerow(table.columns)
    for row in table.rows:
        writer.writerow([_cell(row, c) for c in table.columns])
    return buf.getvalue().removesuffix('\n')


def _json_value(val: Any) -> Any:
    if isinstance(val, float) and val.is_integer():
        return int(val)
    return val


def _ordered_row(row: Mapping[str, Any], columns: Sequence[str]) -> Dict[str, Any]:
    out = {c: _json_value(row[c]) for c in columns if c in row}
    for key, val in row.items():
        if key not in out:
            out[key] = _json_value(val)
    return out


def render_json(table: ResultTable) -> str:
    if table.is_empty:
        return "[]"
    rows = [_ordered_row(r, table.columns) for r in table.rows]
    return json.dumps(rows, indent=2, ensure_ascii=False)


RENDERERS = {
    'table': render_table,
    'csv': render_csv,
    'json': render_json,
}


def render(table: ResultTable, output_format: str) -> str:
    """Render a result in the given format.

    An empty result is reported as "No results found." except for json,
    which renders an empty array.
    """
    fmt = (output_format or 'table').lower()
    if fmt not in RENDERERS:
        logger.warning("Unknown output format '%s', falling back to table", fmt)
        fmt = 'table'
    if table.is_empty and fmt != 'json':
        return NO_RESULTS
    return RENDERERS[fmt](table)


def infer_export_format(path: str) -> str:
    lower = path.lower()
    if lower.endswith(('.xlsx', '.xlsm', '.xls')):
        return 'excel'
    if lower.endswith(('.jsonl', '.ndjson')):
        return 'jsonl'
    if lower.endswith('.json'):
        return 'json'
    if lower.endswith(('.parquet', '.pq')):
        return 'parquet'
    return 'csv'


def export_result(table: ResultTable, output_path: str, output_format: Optional[str] = None) -> str:
    """Write a result to a file through pandas. Returns the format used."""
    fmt = (output_format or infer_export_format(output_path)).lower()
    if fmt in ('xlsx', 'xls'):
        fmt = 'excel'
    if fmt not in SUPPORTED_EXPORT_FORMATS:
        raise ValueError(f"Unsupported export format: {fmt}")
    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    df = table.to_frame()
    if fmt == 'csv':
        df.to_csv(path, index=False)
    elif fmt == 'json':
        df.to_json(path, orient='records', indent=2, force_ascii=False)
    elif fmt == 'jsonl':
        df.to_json(path, orient='records', lines=True, force_ascii=False)
    elif fmt == 'excel':
        try:
            df.to_excel(path, index=False)
        except ImportError:  # pragma: no cover
            raise RuntimeError("openpyxl required for Excel output. Install with: pip install openpyxl")
    elif fmt == 'parquet':
        try:
            df.to_parquet(path, index=False)
        except ImportError:  # pragma: no cover
            raise RuntimeError("pyarrow or fastparquet required for parquet output. Install with: pip install pyarrow")
    logger.info("Wrote %d rows to %s (%s)", len(df), path, fmt)
    return fmt
