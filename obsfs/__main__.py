"""Module entry point for the checkpoint push tool."""
import sys

from .cli import main

if __name__ == "__main__":
    sys.exit(main())
