#!/usr/bin/env python3
"""
Run all tests for the soraql package.

This script discovers and runs all tests in the project using pytest.
"""
import sys
import os
import argparse

REQUIRED_MODULES = ['requests', 'pandas']


def check_dependencies():
    """Report missing runtime libraries before pytest hits import errors."""
    missing = []
    for name in REQUIRED_MODULES:
        try:
            __import__(name)
        except ImportError:
            missing.append(name)
    if missing:
        print(f"Missing dependencies: {', '.join(missing)}")
        print(f"Python executable: {sys.executable}")
        print("Suggest: activate correct venv or run: python -m pip install -e '.[test]'")
        return False
    return True


def run_tests(verbose=False, coverage=False, specific_test=None):
    """Run all tests using pytest."""
    current_dir = os.path.dirname(os.path.abspath(__file__))
    if current_dir not in sys.path:
        sys.path.insert(0, current_dir)

    if not check_dependencies():
        return 1

    import pytest
    args = []
    if verbose:
        args.append('-v')
    if coverage:
        args.extend(['--cov=soraql', '--cov-report=term', '--cov-report=html'])
    if specific_test:
        args.append(specific_test)
    print("Running tests with pytest args:", ' '.join(args) if args else '(none)')
    return pytest.main(args)


def main():
    """Parse arguments and run tests."""
    parser = argparse.ArgumentParser(description="Run soraql package tests")
    parser.add_argument("-v", "--verbose", action="store_true", help="Increase verbosity")
    parser.add_argument("--coverage", action="store_true", help="Generate test coverage report")
    parser.add_argument("test", nargs="?", help="Specific test file or directory to run")
    args = parser.parse_args()
    return run_tests(verbose=args.verbose, coverage=args.coverage, specific_test=args.test)


if __name__ == "__main__":
    sys.exit(main())
