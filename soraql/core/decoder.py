"""Decode newline-delimited JSON result files into a ResultTable."""
from __future__ import annotations
import json
import logging
import math
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from soraql.core.models import ColumnInfo, ResultTable

logger = logging.getLogger(__name__)


def _reject_constant(name: str) -> None:
    raise ValueError(f"invalid JSON constant {name}")


def _parse_float(text: str) -> float:
    value = float(text)
    if math.isinf(value):
        raise ValueError(f"number out of range: {text}")
    return value


def _print_line(line: str) -> None:
    print(line)


def decode_lines(
    lines: Iterable[str],
    column_info: Optional[Sequence[ColumnInfo]] = None,
    passthrough: Optional[Callable[[str], None]] = None,
) -> ResultTable:
    """Build a ResultTable from JSON lines.

    Column order follows column_info when given, otherwise the order in which
    keys are first seen. Lines that are not JSON objects are handed to
    passthrough (printed by default) and left out of the table.
    """
    emit = passthrough or _print_line
    columns: List[str] = [c.name for c in column_info or [] if c.name]
    fixed = bool(columns)
    seen = set(columns)
    rows: List[Dict[str, object]] = []
    skipped = 0
    for raw in lines:
        line = raw.rstrip('\r\n')
        if not line.strip():
            continue
        try:
            row = json.loads(line, parse_constant=_reject_constant, parse_float=_parse_float)
        except ValueError:
            row = None
        if not isinstance(row, dict):
            skipped += 1
            emit(line)
            continue
        rows.append(row)
        if not fixed:
            for key in row:
                if key not in seen:
                    seen.add(key)
                    columns.append(key)
    logger.debug("Decoded %d rows, %d columns (%d lines passed through)", len(rows), len(columns), skipped)
    return ResultTable(columns=columns, rows=rows)


def decode_file(
    path: str,
    column_info: Optional[Sequence[ColumnInfo]] = None,
    passthrough: Optional[Callable[[str], None]] = None,
) -> ResultTable:
    with open(path, 'r', encoding='utf-8', errors='replace') as f:
        return decode_lines(f, column_info, passthrough)
