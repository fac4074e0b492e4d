"""
Pytest configuration for the Funge-Lang test suite.

The interpreter is a set of flat top-level modules; make the repository root
importable so tests and bundled extensions resolve them without installation.
"""

import os
import sys

ROOT = os.path.dirname(os.path.abspath(__file__))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)


def pytest_configure(config):
    config.addinivalue_line("markers", "cli: tests that drive the command-line entry point")
