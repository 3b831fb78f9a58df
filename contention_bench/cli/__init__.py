r"""
Command-line interface for contention-bench.

    contention-bench run -n 8 -p utilities -r 3 -o results -f all
    contention-bench presets
"""

from contention_bench.cli.main import app, main

__all__ = [
    "app",
    "main",
]
