"""Entry point for CLI invocation via python -m JavaDB."""

from JavaDB.cli import main

if __name__ == "__main__":
    main()
