"""Command line interface: `python -m api.cli`."""
