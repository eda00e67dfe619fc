"""Module entrypoint to run `python -m pgsandbox`."""

from __future__ import annotations

from .smoke import main

if __name__ == "__main__":
    raise SystemExit(main())
