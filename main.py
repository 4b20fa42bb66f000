"""Command-line entry point for the Agentura orchestrator."""

from agentura.cli import main


if __name__ == "__main__":
    main()
