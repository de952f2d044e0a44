#!/usr/bin/env python
"""Tests for flag parsing and mode selection."""
import io
import unittest
from unittest import mock

from soraql.cli.main import build_parser, run
from soraql.core.errors import AuthenticationError, ServiceError
from soraql.core.models import ResultTable


class PipedStdin(io.StringIO):
    def isatty(self):
        return False


class TtyStdin(io.StringIO):
    def isatty(self):
        return True


class CliTests(unittest.TestCase):

    def setUp(self):
        self.client = mock.Mock()
        patcher = mock.patch("soraql.cli.main.authenticate", return_value=self.client)
        self.authenticate = patcher.start()
        self.addCleanup(patcher.stop)
        executor_patcher = mock.patch("soraql.cli.main.QueryExecutor")
        self.executor_cls = executor_patcher.start()
        self.addCleanup(executor_patcher.stop)
        self.executor = self.executor_cls.return_value
        self.executor.run.return_value = ResultTable(["a"], [{"a": 1}])
        scratch_patcher = mock.patch("soraql.cli.main.config.ensure_scratch_dir", return_value="/tmp")
        scratch_patcher.start()
        self.addCleanup(scratch_patcher.stop)

    def _run(self, argv, stdin=None):
        args = build_parser().parse_args(argv)
        out = io.StringIO()
        with mock.patch("sys.stderr", new_callable=io.StringIO) as err:
            code = run(args, stdin=stdin or TtyStdin(), out=out)
        return code, out.getvalue(), err.getvalue()

    def test_defaults(self):
        args = build_parser().parse_args([])
        self.assertEqual(args.profile, "default")
        self.assertFalse(args.silent)

    def test_sql_mode(self):
        code, _, _ = self._run(["--sql", "select 1", "--format", "csv", "--from", "1640995200"])
        self.assertEqual(code, 0)
        query = self.executor.run.call_args[0][0]
        self.assertEqual(query.sql_text, "select 1")
        self.assertEqual(query.from_time, 1640995200)
        kwargs = self.executor.run.call_args[1]
        self.assertEqual(kwargs["output_format"], "csv")
        self.assertFalse(kwargs["show_progress"])

    def test_sql_failure_exit_code(self):
        self.executor.run.side_effect = ServiceError("SEM0001", "bad")
        code, _, err = self._run(["--sql", "selec"])
        self.assertEqual(code, 1)
        self.assertIn("Failed to execute query: API error [SEM0001]: bad", err)

    def test_time_parse_error(self):
        code, _, err = self._run(["--from", "yesterday"])
        self.assertEqual(code, 1)
        self.assertIn("Time parsing error", err)
        self.authenticate.assert_not_called()

    def test_non_ascii_relative_time(self):
        code, _, err = self._run(["--from", "-²h"])
        self.assertEqual(code, 1)
        self.assertIn("Time parsing error", err)

    def test_reversed_window(self):
        code, _, _ = self._run(["--from", "1641081600", "--to", "1640995200"])
        self.assertEqual(code, 1)

    def test_invalid_format(self):
        code, _, err = self._run(["--format", "xml"])
        self.assertEqual(code, 1)
        self.assertIn("Invalid format 'xml'", err)

    def test_auth_failure(self):
        self.authenticate.side_effect = AuthenticationError("bad credentials")
        code, _, err = self._run(["--sql", "select 1"])
        self.assertEqual(code, 1)
        self.assertIn("Authentication failed: bad credentials", err)

    def test_schema_mode(self):
        self.client.get_schemas_raw.return_value = b'{"tables":[]}'
        code, out, _ = self._run(["--schema"])
        self.assertEqual(code, 0)
        self.assertEqual(out, '{\n  "tables": []\n}\n')

    def test_schema_failure(self):
        self.client.get_schemas_raw.side_effect = ServiceError("E", "down")
        code, _, err = self._run(["--schema"])
        self.assertEqual(code, 1)
        self.assertIn("Failed to get schemas", err)

    @mock.patch("soraql.cli.main.run_piped")
    def test_piped_mode_is_silent(self, run_piped):
        stdin = PipedStdin("select 1\n")
        code, _, _ = self._run([], stdin=stdin)
        self.assertEqual(code, 0)
        state = run_piped.call_args[0][2]
        self.assertTrue(state.silent)
        self.assertIsNone(state.history_file)

    @mock.patch("soraql.cli.main.start_repl")
    def test_interactive_mode(self, start_repl):
        code, _, _ = self._run(["--profile", "work", "--format", "json"])
        self.assertEqual(code, 0)
        state = start_repl.call_args[0][2]
        self.assertEqual(state.profile_name, "work")
        self.assertEqual(state.output_format, "json")
        self.assertFalse(state.silent)
        self.assertIsNotNone(state.history_file)
        self.authenticate.assert_called_once_with("work")


if __name__ == "__main__":
    unittest.main()
