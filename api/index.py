"""
Vercel serverless entry for the Stampcard API.

Vercel runs this file from ``api/`` without installing the project, so the
repository root is put on the import path before the app is built.
"""

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from stampcard.main import app  # noqa: E402

handler = app

__all__ = ["app", "handler"]
