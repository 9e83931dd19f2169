"""Allow running as ``python -m digital_rain``."""

import sys

from .animation import main

sys.exit(main())
