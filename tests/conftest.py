"""Shared pytest setup for the ro_tracker test suite.

Puts the repository root on sys.path so the namespace package imports from a
plain checkout, without an editable install.
"""

from __future__ import annotations

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
