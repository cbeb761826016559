"""Main entry point for ``python -m svcadm``."""

from svcadm.cli.main import main


if __name__ == "__main__":
    main()
