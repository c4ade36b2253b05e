"""
Entry point for running the recall CLI as a module.

Usage:
    python -m recall.delivery due
    python -m recall.delivery stats
    python -m recall.delivery --help
"""
from .cli import main

if __name__ == "__main__":
    main()
