"""Entry point for running the hookrelay worker pool as a module.

Usage:
    python -m hookrelay
"""

from .runner import main

if __name__ == "__main__":
    main()
