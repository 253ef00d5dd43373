"""Allow ``python -m ytd_queue`` invocation.

This module simply delegates to the CLI error-boundary entry point so
that ``python -m ytd_queue`` behaves identically to the ``ytd-queue``
console script.
"""

from __future__ import annotations

from ytd_queue.cli.app import cli

if __name__ == "__main__":
    cli()
