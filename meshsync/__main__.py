"""Allow ``python -m meshsync``."""

from __future__ import annotations

import sys

from meshsync.cli import main

sys.exit(main())
