"""
Package entry point.

Allows running the dashboard via:

    python -m schooldash

This simply forwards execution to schooldash.cli.main().
"""

from schooldash.cli import main

if __name__ == "__main__":
    main()
