"""Main entry point for the gameshare package."""

from gameshare.cli import app


if __name__ == "__main__":
    app()
