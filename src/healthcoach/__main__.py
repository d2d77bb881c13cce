"""healthcoach CLI entry."""

from healthcoach.cli import app

if __name__ == "__main__":
    app()
