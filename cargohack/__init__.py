"""Cargo feature combinations, command-line parsing and help text for a cargo hack style tool."""

__version__ = "0.1.0"