#!/usr/bin/env python3
"""Thin loader delegating to the CLI in the interface layer."""

import sys

from interface.app import main

if __name__ == "__main__":
    sys.exit(main())
