"""Command-line interface."""
import sys

from elasticityfem.main import main

if __name__ == "__main__":
    sys.exit(main())
