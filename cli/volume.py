"""Volume bot entrypoint for running from a source checkout.

Usage:
    python cli/volume.py --max-trades 10
"""

from __future__ import annotations

from pathlib import Path
import sys

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from volume_bot.runner.bot import main


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
