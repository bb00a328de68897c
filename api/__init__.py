"""Operator and use-case entry points for the studio store."""
