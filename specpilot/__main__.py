"""
Entry point for running specpilot as a module.

Usage: python -m specpilot [args]
"""

from specpilot.cli import main

if __name__ == "__main__":
    main()
