#!/usr/bin/env python3
"""Main entry point for `python -m tx_engine`"""

import sys

from tx_engine.cli import main

if __name__ == "__main__":
    sys.exit(main())
