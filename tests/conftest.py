from __future__ import annotations

import sys
from pathlib import Path


def pytest_configure() -> None:
    here = Path(__file__).resolve().parent
    root = here.parent
    # Repository root for `turnloop`, tests dir for the shared `fakes` module.
    for p in (root, here):
        if str(p) not in sys.path:
            sys.path.insert(0, str(p))
