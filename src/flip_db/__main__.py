"""Module entrypoint for ``python -m flip_db`` CLI usage."""

from flip_db.cli import app as cli_app


def main() -> None:
    cli_app()


if __name__ == "__main__":
    main()
