"""Allow ``python -m cloudsvc``."""

from cloudsvc.cli import main

if __name__ == "__main__":
    main()
