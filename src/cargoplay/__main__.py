import sys

from cargoplay.main import main

sys.exit(main())
