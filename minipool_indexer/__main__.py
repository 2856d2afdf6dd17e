"""Allow running the package as a module: python -m minipool_indexer"""

import sys

from minipool_indexer.cli import main

if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
