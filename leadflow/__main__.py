"""Allow `python -m leadflow`."""

import sys

from leadflow.cli import main

if __name__ == "__main__":
    sys.exit(main())
