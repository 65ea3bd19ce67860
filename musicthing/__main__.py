"""Run the command line with ``python -m musicthing``."""

import sys

from musicthing.app import run_app


def main() -> None:
    sys.exit(run_app(sys.argv[1:]))


if __name__ == "__main__":
    main()
