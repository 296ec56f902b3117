"""Module entry point: python -m nostr_sentinel ..."""

from __future__ import annotations

from nostr_sentinel.cli import main


if __name__ == "__main__":
    raise SystemExit(main())
