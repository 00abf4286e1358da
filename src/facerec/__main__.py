"""Allow running as ``python -m facerec``."""

from .cli import main

if __name__ == "__main__":
    main()
