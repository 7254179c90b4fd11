import sys

from stylebuild.cli import main

sys.exit(main())
