from __future__ import annotations

import sys
from pathlib import Path


def _ensure_paths_on_syspath() -> None:
    # Keep `import yolo_detector` working without an editable install, and let
    # test modules share helpers from `fakes.py` under any pytest import mode.
    tests_dir = Path(__file__).resolve().parent
    for p in (tests_dir.parent, tests_dir):
        p_str = str(p)
        if p_str not in sys.path:
            sys.path.insert(0, p_str)


_ensure_paths_on_syspath()
