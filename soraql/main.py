"""Main entry point for soraql CLI."""
# Allow direct execution via `python soraql/main.py` by ensuring package root on sys.path
if __name__ == "__main__" and __package__ is None:  # running as script, not module
    import os, sys
    sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from soraql.cli.main import main

if __name__ == "__main__":
    main()
