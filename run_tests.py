#!/usr/bin/env python3
"""Test runner for Japanese receipt field extraction."""

import sys
import subprocess
from pathlib import Path


def run_tests():
    """Run the complete test suite."""
    print("Running Japanese Receipt Fields Test Suite")
    print("=" * 50)

    project_root = Path(__file__).parent

    try:
        result = subprocess.run([sys.executable, '-m', 'pytest', '--version'],
                                capture_output=True, text=True)
        if result.returncode != 0:
            print("pytest not found. Install the test extra: pip install -e .[test]")
            return False

        test_args = [
            sys.executable, '-m', 'pytest',
            'tests/',
            '-v',
            '--tb=short',
            '--durations=10',  # Show 10 slowest tests
        ]

        print("Running tests...")
        result = subprocess.run(test_args, cwd=project_root)

        if result.returncode == 0:
            print("\nAll tests passed!")
            print("\nTest Coverage Summary:")
            print("  - DateNormalizer/DateParser: era conversion, formats, validation window")
            print("  - AmountParser: keyword priority, currency markers, alternate readings")
            print("  - PayeeParser: entity markers, rejection, adjacent-line joins")
            print("  - UsageClassifier: labels, keywords, fuzzy, business types, fallback")
            print("  - Extractor: end-to-end receipts and region enrichment")
        else:
            print(f"\nTests failed (exit code: {result.returncode})")
            return False

    except Exception as e:
        print(f"Error running tests: {e}")
        return False

    return True


def run_specific_test(test_pattern):
    """Run specific test matching pattern."""
    test_args = [
        sys.executable, '-m', 'pytest',
        'tests/',
        '-v',
        '-k', test_pattern
    ]

    result = subprocess.run(test_args)
    return result.returncode == 0


if __name__ == "__main__":
    if len(sys.argv) > 1:
        pattern = sys.argv[1]
        print(f"Running tests matching: {pattern}")
        success = run_specific_test(pattern)
    else:
        success = run_tests()

    sys.exit(0 if success else 1)
