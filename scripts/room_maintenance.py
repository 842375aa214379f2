#!/usr/bin/env python3
"""Run the room lifecycle sweep outside of the API process.

    python scripts/room_maintenance.py               # single sweep
    python scripts/room_maintenance.py --interval 60 # keep running
"""

from __future__ import annotations

import sys
from pathlib import Path

BACKEND_DIR = Path(__file__).resolve().parents[1] / "backend"
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from app.services.room_maintenance import main  # noqa: E402

if __name__ == "__main__":
    sys.exit(main())
