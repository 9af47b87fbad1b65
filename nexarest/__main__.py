"""
nexarest CLI Entry Point
========================

Allows running nexarest as a module: python -m nexarest
"""

import sys

from nexarest.cli import cli

if __name__ == "__main__":
    sys.exit(cli())
