"""Package entry point — allows ``python -m lambda_lens``."""

import sys

from lambda_lens.cli import main

if __name__ == "__main__":
    sys.exit(main())
