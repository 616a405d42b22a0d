"""Entry point for `python -m stdiorpc`."""

from stdiorpc.cli.commands import app

if __name__ == "__main__":
    app()
