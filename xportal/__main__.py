"""Entry point for `python -m xportal`.

Usage:
    python -m xportal
"""

from __future__ import annotations

import asyncio

from xportal.app import main

asyncio.run(main())
