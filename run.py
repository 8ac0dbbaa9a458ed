"""Run procfleet from a source checkout."""

import sys

from procfleet.cli import main

if __name__ == "__main__":
    sys.exit(main())
