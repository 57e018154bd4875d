"""Module entry point: python -m pylocchanger ..."""

from __future__ import annotations

from pylocchanger.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
