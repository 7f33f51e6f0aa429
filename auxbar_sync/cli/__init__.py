"""
Command-Line Interface Layer.

This package contains the Typer application and the Rich helpers used to
present the sync engine's status in the terminal.
"""
