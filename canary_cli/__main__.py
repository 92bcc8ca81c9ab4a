"""Entry point for `python -m canary_cli` and `tweety` console script."""

from __future__ import annotations

from canary_cli.app import app


def main() -> None:
    app()


if __name__ == "__main__":
    main()
