"""Entry point for python -m chat_probe."""

from chat_probe.cli import main

if __name__ == "__main__":
    main()
