"""Table and column extraction from the schema endpoint.

The service has returned table metadata in several shapes over time:

  {"tables": [{"name": "T", "columnInfo": [...]}, ...]}        array of tables
  {"tables": {"T": {"columns": [...]}, ...}}                  map of tables
  {"schemas": {"s": {"tables": {"T": {...}}}}}                nested schemas
  {"T": {"columns": ...}, "version": ...}                     bare top-level keys

Each shape has a pure extraction function; they are tried in order and the
first one that yields tables wins. Columns are handled the same way.
"""
from __future__ import annotations
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from soraql.core.models import TableColumn

logger = logging.getLogger(__name__)

Document = Mapping[str, Any]
TableMap = Dict[str, Mapping[str, Any]]

NON_TABLE_KEYS = {'version', 'metadata', 'info'}


def _first_str(data: Mapping[str, Any], *keys: str) -> str:
    for key in keys:
        if key in data:
            val = data[key]
            return val if isinstance(val, str) else ''
    return ''


# --- column strategies ---

def _columns_from_column_info(table: Mapping[str, Any]) -> List[TableColumn]:
    cols = table.get('columnInfo')
    if not isinstance(cols, list):
        return []
    out = []
    for col in cols:
        if not isinstance(col, Mapping):
            continue
        name = _first_str(col, 'name')
        if not name:
            continue
        # databaseType is more precise than type
        col_type = _first_str(col, 'databaseType', 'type') or 'UNKNOWN'
        out.append(TableColumn(name, col_type, _first_str(col, 'description')))
    return out


def _columns_from_column_list(table: Mapping[str, Any]) -> List[TableColumn]:
    cols = table.get('columns')
    if not isinstance(cols, list):
        return []
    out = []
    for col in cols:
        if not isinstance(col, Mapping):
            continue
        name = _first_str(col, 'name', 'column_name')
        if name:
            col_type = _first_str(col, 'type', 'data_type', 'column_type') or 'UNKNOWN'
            out.append(TableColumn(name, col_type))
    return out


def _columns_from_column_map(table: Mapping[str, Any]) -> List[TableColumn]:
    cols = table.get('columns')
    if not isinstance(cols, Mapping):
        return []
    out = []
    for name, info in cols.items():
        col_type = 'UNKNOWN'
        if isinstance(info, Mapping):
            col_type = _first_str(info, 'type', 'data_type') or 'UNKNOWN'
        elif isinstance(info, str):
            col_type = info
        out.append(TableColumn(str(name), col_type))
    return out


def _columns_from_fields(table: Mapping[str, Any]) -> List[TableColumn]:
    fields = table.get('fields')
    if not isinstance(fields, list):
        return []
    out = []
    for f in fields:
        if isinstance(f, Mapping):
            name = _first_str(f, 'name')
            if name:
                out.append(TableColumn(name, _first_str(f, 'type') or 'UNKNOWN'))
    return out


COLUMN_STRATEGIES: Sequence[Callable[[Mapping[str, Any]], List[TableColumn]]] = (
    _columns_from_column_info,
    _columns_from_column_list,
    _columns_from_column_map,
    _columns_from_fields,
)


def extract_columns(table: Mapping[str, Any]) -> List[TableColumn]:
    for strategy in COLUMN_STRATEGIES:
        cols = strategy(table)
        if cols:
            return cols
    return []


# --- table strategies ---

def _tables_from_array(doc: Document) -> TableMap:
    tables = doc.get('tables')
    if not isinstance(tables, list):
        return {}
    out: TableMap = {}
    for t in tables:
        if isinstance(t, Mapping) and isinstance(t.get('name'), str):
            out[t['name']] = t
    return out


def _tables_from_map(doc: Document) -> TableMap:
    tables = doc.get('tables')
    if not isinstance(tables, Mapping):
        return {}
    return {str(k): v for k, v in tables.items() if isinstance(v, Mapping)}


def _tables_from_nested_schemas(doc: Document) -> TableMap:
    out: TableMap = {}
    for key in ('schemas', 'databases'):
        schemas = doc.get(key)
        if not isinstance(schemas, Mapping):
            continue
        for schema in schemas.values():
            if isinstance(schema, Mapping) and isinstance(schema.get('tables'), Mapping):
                for name, table in schema['tables'].items():
                    if isinstance(table, Mapping):
                        out[str(name)] = table
    return out


def _tables_from_top_level(doc: Document) -> TableMap:
    out: TableMap = {}
    for key, value in doc.items():
        if key in NON_TABLE_KEYS or not isinstance(value, Mapping):
            continue
        if 'columns' in value and extract_columns(value):
            out[str(key)] = value
    return out


TABLE_STRATEGIES: Sequence[Callable[[Document], TableMap]] = (
    _tables_from_array,
    _tables_from_map,
    _tables_from_nested_schemas,
    _tables_from_top_level,
)


def extract_tables(doc: Any) -> TableMap:
    if not isinstance(doc, Mapping):
        return {}
    for strategy in TABLE_STRATEGIES:
        tables = strategy(doc)
        if tables:
            logger.debug("Schema matched %s (%d tables)", strategy.__name__, len(tables))
            return tables
    return {}


def list_tables(doc: Any) -> List[str]:
    """Sorted table names found in a schema document."""
    return sorted(extract_tables(doc))


def describe_schema(doc: Any, table_name: Optional[str] = None) -> Dict[str, List[TableColumn]]:
    """Columns per table; with table_name, only that table (case-insensitive).

    Returns an empty dict when the named table does not exist.
    """
    tables = extract_tables(doc)
    if table_name is None:
        return {name: extract_columns(data) for name, data in tables.items()}
    if table_name in tables:
        return {table_name: extract_columns(tables[table_name])}
    for name, data in tables.items():
        if name.lower() == table_name.lower():
            return {name: extract_columns(data)}
    return {}
