"""Maker-checker claim workflow: state machine, assignment, document ledger and API."""

__version__ = "0.1.0"
