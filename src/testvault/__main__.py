"""Allow running testvault as a module: python -m testvault."""

from testvault.cli import main

if __name__ == "__main__":
    main()
