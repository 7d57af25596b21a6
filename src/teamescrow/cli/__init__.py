"""Typer sub-commands for the Teamescrow CLI."""
