#!/usr/bin/env python
"""Tests for schema extraction across the supported document shapes."""
import unittest

from soraql.core.models import TableColumn
from soraql.core.schema import describe_schema, extract_columns, extract_tables, list_tables

ARRAY_DOC = {
    "tables": [
        {"name": "SIM_SNAPSHOTS", "columnInfo": [
            {"name": "ICCID", "type": "string", "databaseType": "VARCHAR", "description": "SIM ICCID"},
            {"name": "TIMESTAMP", "type": "number"},
        ]},
        {"name": "CELL_TOWERS", "columnInfo": [{"name": "MCC", "type": "string"}]},
    ]
}


class TableExtractionTests(unittest.TestCase):

    def test_array_of_tables(self):
        self.assertEqual(list_tables(ARRAY_DOC), ["CELL_TOWERS", "SIM_SNAPSHOTS"])

    def test_map_of_tables(self):
        doc = {"tables": {"B": {"columns": [{"name": "x", "type": "int"}]}, "A": {"columns": []}}}
        self.assertEqual(list_tables(doc), ["A", "B"])

    def test_nested_schemas(self):
        doc = {"schemas": {"main": {"tables": {"T1": {"columns": {"c": "VARCHAR"}}}}},
               "databases": {"other": {"tables": {"T2": {"fields": [{"name": "f", "type": "int"}]}}}}}
        self.assertEqual(list_tables(doc), ["T1", "T2"])

    def test_top_level_tables(self):
        doc = {"version": "1", "metadata": {"columns": [{"name": "ignored"}]},
               "EVENTS": {"columns": [{"column_name": "id", "data_type": "int"}]},
               "NOT_A_TABLE": {"foo": 1}}
        self.assertEqual(list_tables(doc), ["EVENTS"])

    def test_unrecognised(self):
        self.assertEqual(list_tables({"foo": "bar"}), [])
        self.assertEqual(list_tables([1, 2]), [])
        self.assertEqual(extract_tables(None), {})


class ColumnExtractionTests(unittest.TestCase):

    def test_column_info_prefers_database_type(self):
        cols = extract_columns(ARRAY_DOC["tables"][0])
        self.assertEqual(cols[0], TableColumn("ICCID", "VARCHAR", "SIM ICCID"))
        self.assertEqual(cols[1], TableColumn("TIMESTAMP", "number", ""))

    def test_column_list(self):
        cols = extract_columns({"columns": [{"name": "a", "type": "int"}, {"column_name": "b"}, {"x": 1}]})
        self.assertEqual(cols, [TableColumn("a", "int"), TableColumn("b", "UNKNOWN")])

    def test_column_map(self):
        cols = extract_columns({"columns": {"a": {"data_type": "int"}, "b": "text", "c": None}})
        self.assertEqual(cols, [TableColumn("a", "int"), TableColumn("b", "text"), TableColumn("c", "UNKNOWN")])

    def test_fields(self):
        self.assertEqual(extract_columns({"fields": [{"name": "f"}]}), [TableColumn("f", "UNKNOWN")])

    def test_first_non_empty_strategy_wins(self):
        table = {"columnInfo": [], "columns": [{"name": "a", "type": "int"}]}
        self.assertEqual(extract_columns(table), [TableColumn("a", "int")])


class DescribeSchemaTests(unittest.TestCase):

    def test_all_tables(self):
        schemas = describe_schema(ARRAY_DOC)
        self.assertEqual(set(schemas), {"SIM_SNAPSHOTS", "CELL_TOWERS"})
        self.assertEqual(len(schemas["SIM_SNAPSHOTS"]), 2)

    def test_case_insensitive_lookup(self):
        found = describe_schema(ARRAY_DOC, "sim_snapshots")
        self.assertEqual(list(found), ["SIM_SNAPSHOTS"])

    def test_missing_table(self):
        self.assertEqual(describe_schema(ARRAY_DOC, "NOPE"), {})


if __name__ == "__main__":
    unittest.main()
