#!/usr/bin/env python
"""
Test runner script for the full suite
Usage: python run_tests.py [app ...]
"""
import os
import sys
import django
from django.conf import settings
from django.test.utils import get_runner

APPS = [
    'bin2win.core',
    'bin2win.booths',
    'bin2win.waste',
    'bin2win.credits',
    'bin2win.rewards',
    'bin2win.reports',
]

if __name__ == "__main__":
    os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'bin2win.config.settings')
    django.setup()
    TestRunner = get_runner(settings)
    test_runner = TestRunner()
    labels = [f'bin2win.{name}' if not name.startswith('bin2win.') else name for name in sys.argv[1:]]
    failures = test_runner.run_tests(labels or APPS)
    sys.exit(bool(failures))
