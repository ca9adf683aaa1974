"""Allow ``python -m worldsynth``."""

from .cli import main

if __name__ == "__main__":
    main()
