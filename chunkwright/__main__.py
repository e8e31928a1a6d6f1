"""Module entrypoint for running chunkwright as ``python -m chunkwright``."""

from __future__ import annotations

from chunkwright.cli import main


if __name__ == "__main__":
    main()
