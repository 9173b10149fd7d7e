from __future__ import annotations

from acs_email.cli import main


if __name__ == "__main__":
    raise SystemExit(main())
