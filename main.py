#!/usr/bin/env python3
"""
tfeval - Main entry point.

Runs the command line interface from a source checkout.
"""

import sys

from tfeval.main import main


if __name__ == "__main__":
    sys.exit(main())
