#!/usr/bin/env python
"""Tests for query status parsing and the handle's status transitions."""
import unittest

from soraql.core.models import ColumnInfo, QueryHandle, QueryStatus, StatusResponse


class QueryStatusTests(unittest.TestCase):

    def test_parse(self):
        self.assertIs(QueryStatus.parse("RUNNING"), QueryStatus.RUNNING)
        self.assertIs(QueryStatus.parse("COMPLETED"), QueryStatus.COMPLETED)
        self.assertIs(QueryStatus.parse("QUEUED"), QueryStatus.UNKNOWN)
        self.assertIs(QueryStatus.parse("SUBMITTED"), QueryStatus.UNKNOWN)
        self.assertIs(QueryStatus.parse(""), QueryStatus.UNKNOWN)

    def test_terminal(self):
        self.assertTrue(QueryStatus.COMPLETED.is_terminal)
        self.assertTrue(QueryStatus.FAILED.is_terminal)
        self.assertFalse(QueryStatus.EXPORTING.is_terminal)


class QueryHandleTests(unittest.TestCase):

    def setUp(self):
        self.handle = QueryHandle(query_id="q-1")

    def test_forward_progress(self):
        for raw in ("RUNNING", "EXPORTING", "COMPLETED"):
            self.handle.update(StatusResponse(status=raw))
            self.assertEqual(self.handle.status.value, raw)

    def test_never_moves_backwards(self):
        self.handle.update(StatusResponse(status="EXPORTING"))
        reported = self.handle.update(StatusResponse(status="RUNNING"))
        self.assertIs(reported, QueryStatus.RUNNING)
        self.assertIs(self.handle.status, QueryStatus.EXPORTING)
        self.assertEqual(self.handle.raw_status, "RUNNING")

    def test_unknown_status_keeps_progress(self):
        self.handle.update(StatusResponse(status="RUNNING"))
        self.handle.update(StatusResponse(status="QUEUED"))
        self.assertIs(self.handle.status, QueryStatus.RUNNING)
        self.assertEqual(self.handle.raw_status, "QUEUED")

    def test_terminal_status_is_final(self):
        self.handle.update(StatusResponse(status="FAILED"))
        self.handle.update(StatusResponse(status="COMPLETED"))
        self.assertIs(self.handle.status, QueryStatus.FAILED)
        self.handle = QueryHandle(query_id="q-2")
        self.handle.update(StatusResponse(status="COMPLETED"))
        self.handle.update(StatusResponse(status="RUNNING"))
        self.assertIs(self.handle.status, QueryStatus.COMPLETED)

    def test_url_and_columns_kept(self):
        cols = [ColumnInfo(name="a", type="int")]
        self.handle.update(StatusResponse(status="COMPLETED", url="https://h/r.gz", column_info=cols))
        self.handle.update(StatusResponse(status="COMPLETED"))
        self.assertEqual(self.handle.result_url, "https://h/r.gz")
        self.assertEqual(self.handle.column_info, cols)


if __name__ == "__main__":
    unittest.main()
