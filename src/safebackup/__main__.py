"""Main entry point for the safebackup package."""

from safebackup.cli import main


if __name__ == "__main__":
    main()
