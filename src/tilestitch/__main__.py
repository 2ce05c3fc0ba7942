"""TileStitch command-line entry point (``python -m tilestitch``)."""

from tilestitch.cli import main

if __name__ == "__main__":
    main()
