import sys

from comparables.cli import main

sys.exit(main())
