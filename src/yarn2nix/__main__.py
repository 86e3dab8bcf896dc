import sys

from yarn2nix.cli import main

sys.exit(main())
