import sys

from local_functions.cli import main

sys.exit(main())
