"""
Entry point for running plzrun via `python -m plzrun`.
"""

import sys

from .cli import main

if __name__ == "__main__":
    sys.exit(main())
