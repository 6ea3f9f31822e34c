"""CLI entry point for nzbforge."""

from .main import main

if __name__ == "__main__":  # pragma: no cover - script entry
    raise SystemExit(main())
