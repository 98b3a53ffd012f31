"""CLI module for StoreLens.

This package provides the ``storelens`` command-line interface.
"""

from .main import ExitCode, app
from .summary import MetricsSummaryFormatter

__all__ = [
    'ExitCode',
    'app',
    'MetricsSummaryFormatter',
]
