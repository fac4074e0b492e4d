"""Command-line entry point."""

import io
import json
import os
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout
from unittest import mock

import pytest

from fungeln import run_cli

from helpers import EXT_DIR

pytestmark = pytest.mark.cli


def invoke(argv, stdin=""):
    stdout, stderr = io.StringIO(), io.StringIO()
    with mock.patch("sys.stdin", io.StringIO(stdin)), redirect_stdout(stdout), redirect_stderr(stderr):
        code = run_cli(argv)
    return code, stdout.getvalue(), stderr.getvalue()


class TestCli(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)

    def write_program(self, text, name="prog.bf"):
        path = os.path.join(self._tmp.name, name)
        with open(path, "w", encoding="utf-8") as handle:
            handle.write(text)
        return path

    def test_runs_program_file(self):
        code, out, err = invoke([self.write_program("91+.@\n")])
        self.assertEqual(code, 0)
        self.assertEqual(out, "10")
        self.assertEqual(err, "")

    def test_reads_stdin_lines(self):
        code, out, _ = invoke([self.write_program("&1+.@")], stdin="41\n")
        self.assertEqual(code, 0)
        self.assertEqual(out, "42")

    def test_literal_source(self):
        code, out, _ = invoke(["-source", '"!iH",,,@'])
        self.assertEqual(code, 0)
        self.assertEqual(out, "Hi!")

    def test_missing_file(self):
        code, out, err = invoke([os.path.join(self._tmp.name, "nope.bf")])
        self.assertEqual(code, 1)
        self.assertEqual(out, "")
        self.assertIn("Failed to read", err)

    def test_step_limit_prints_traceback(self):
        code, _, err = invoke(["--max-steps", "5", "-source", "  "])
        self.assertEqual(code, 1)
        self.assertIn("FungeStepLimitError", err)
        self.assertIn("Traceback (most recent step last)", err)

    def test_traceback_json(self):
        code, _, err = invoke(["--max-steps", "2", "--traceback-json", "-source", "1 "])
        self.assertEqual(code, 1)
        payload = err[err.index("{"):]
        data = json.loads(payload)
        self.assertEqual(data["error"]["rule"], "LIMIT")

    def test_negative_step_limit(self):
        code, _, err = invoke(["--max-steps", "-1", "-source", "@"])
        self.assertEqual(code, 1)
        self.assertIn("non-negative", err)

    def test_dump_grid(self):
        code, _, err = invoke(["--dump-grid", "-source", "88*05p@"])
        self.assertEqual(code, 0)
        self.assertEqual(err, "88*05@@\n")

    def test_seed_makes_random_reproducible(self):
        path = self.write_program("v1 \n>?@\n 2 \n")
        first = invoke(["--seed", "5", "--dump-grid", path])
        second = invoke(["--seed", "5", "--dump-grid", path])
        self.assertEqual(first, second)
        self.assertEqual(first[0], 0)

    def test_extension_flag(self):
        code, out, err = invoke(["--ext", os.path.join(EXT_DIR, "histogram.py"), "-source", "12+.@"])
        self.assertEqual(code, 0)
        self.assertEqual(out, "3")
        self.assertIn("[histogram] 5 steps", err)

    def test_bad_extension(self):
        code, _, err = invoke(["--ext", os.path.join(self._tmp.name, "missing.py"), "-source", "@"])
        self.assertEqual(code, 1)
        self.assertIn("ExtensionError", err)

    def test_output_failure_exits_nonzero(self):
        class _Closed(io.StringIO):
            def write(self, text):
                raise BrokenPipeError("closed")

        stderr = io.StringIO()
        with mock.patch("sys.stdout", _Closed()), redirect_stderr(stderr):
            code = run_cli(["-source", "5.@"])
        self.assertEqual(code, 1)
        self.assertIn("FungeIOError", stderr.getvalue())

    def test_extension_directory(self):
        with mock.patch.dict(os.environ, {"FUNGE_TRACE_OPS": "OUTPUT_INT"}):
            code, out, err = invoke(["--ext", EXT_DIR, "-source", "12+.@"])
        self.assertEqual(code, 0)
        self.assertEqual(out, "3")
        self.assertIn("[histogram] 5 steps", err)
        traced = [line for line in err.splitlines() if line.startswith("[trace] s_")]
        self.assertEqual(len(traced), 1)
        self.assertIn("OUTPUT_INT", traced[0])
