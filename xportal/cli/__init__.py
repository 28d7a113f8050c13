"""xportal command-line interface.

Exposes:
    cli -- Click group entry point (registered as ``xportal`` script).
"""

from xportal.cli.main import cli

__all__ = ["cli"]
