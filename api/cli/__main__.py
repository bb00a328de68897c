"""CLI entry point for running as `python -m api.cli`.

Usage:
    python -m api.cli backup [--out FILE]   # Write a backup document
    python -m api.cli restore FILE          # Restore a backup document
    python -m api.cli migrate               # Move legacy data into the store
    python -m api.cli info                  # Storage usage / table map
    python -m api.cli exists COLLECTION     # Prints true or false
    python -m api.cli init-schema           # Create remote tables
"""

import sys

from .commands import create_parser, run_command


def main():
    """Entry point for `python -m api.cli`."""
    parser = create_parser()
    args = parser.parse_args()
    sys.exit(run_command(args))


if __name__ == "__main__":
    main()
