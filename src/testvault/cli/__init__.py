"""CLI package for testvault."""

from testvault.cli.app import app


def main() -> None:
    """Main entry point for the CLI."""
    app(prog_name="testvault")


__all__ = ["app", "main"]
