"""Allow running as python -m hotkeytranslator."""

from hotkeytranslator.cli import app


def main() -> None:
    app()


main()
