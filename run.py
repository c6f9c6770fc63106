import sys

from rappel.main import main

if __name__ == "__main__":
    sys.exit(main())
