"""Design variable treatments for a CSV file from anywhere in the repository.

This launcher wraps :mod:`variable_treatment.src.experiments.run_design`:

Design goals
------------
- Robust to current working directory: you can run from repo root or from inside
  ``variable_treatment``.
- Relative ``--data`` / ``--config`` / ``--output-dir`` paths are resolved against
  the directory you launched from, then the script runs from the repository root
  so the default config and output paths resolve.
- A consolidated log file under ``variable_treatment/outputs/logs``.

Usage
-----
From the repository root:

    python variable_treatment/run_treatment.py --data train.csv --outcome y --target 1

Or from inside the folder:

    cd variable_treatment
    python run_treatment.py --data ../train.csv --outcome y --cross-frame
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Make imports & paths robust to the current working directory.
# ---------------------------------------------------------------------------

import os
import sys
from pathlib import Path
from typing import List, Optional, Sequence

PROJECT_ROOT = Path(__file__).resolve().parent
REPO_ROOT = PROJECT_ROOT.parent

# Ensure repo root is importable (needed when running from inside variable_treatment/)
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from variable_treatment.src.experiments import run_design

LOG_FILE = PROJECT_ROOT / "outputs" / "logs" / "run_treatment.log"

_PATH_OPTIONS = ("--data", "--config", "--output-dir", "--log-file")


def _absolutize(argv: Sequence[str], cwd: Path) -> List[str]:
    """Resolve path-valued options against the launch directory."""
    out: List[str] = []
    expect_path = False
    for token in argv:
        if expect_path:
            path = Path(token)
            out.append(str(path if path.is_absolute() else (cwd / path).resolve()))
            expect_path = False
            continue
        option, sep, value = token.partition("=")
        if option in _PATH_OPTIONS and sep:
            path = Path(value)
            out.append(f"{option}={path if path.is_absolute() else (cwd / path).resolve()}")
            continue
        expect_path = token in _PATH_OPTIONS
        out.append(token)
    return out


def main(argv: Optional[Sequence[str]] = None) -> None:
    argv = list(sys.argv[1:] if argv is None else argv)
    argv = _absolutize(argv, Path.cwd())
    if not any(a == "--log-file" or a.startswith("--log-file=") for a in argv):
        argv += ["--log-file", str(LOG_FILE)]

    # Make sure relative defaults in the design script resolve correctly.
    os.chdir(REPO_ROOT)
    run_design(argv)


if __name__ == "__main__":
    main()
