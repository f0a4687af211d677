"""
elfcal Module Entry Point
==========================

Allows running the elfcal CLI via: python -m elfcal
"""

from elfcal.cli import main

if __name__ == "__main__":
    main()
