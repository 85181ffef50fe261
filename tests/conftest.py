"""Pytest configuration for the ts2rust test suite."""

import sys
from pathlib import Path

# Run against the working tree without installing
sys.path.insert(0, str(Path(__file__).parent.parent))
