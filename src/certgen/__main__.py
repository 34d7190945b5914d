"""certgen main entry point."""
import sys

from certgen._internal import main

if __name__ == '__main__':
    sys.exit(main.main())
