#!/usr/bin/env python3
"""FocusPair entry point.

Run with:
    python main.py
    python -m focuspair
"""

from focuspair.__main__ import main


if __name__ == "__main__":
    main()
