#!/usr/bin/env python3
"""
Run an adaptive linearized Euler simulation from the command line.

Usage:
    python scripts/run_simulation.py --config config/examples/plane_wave_2d.yaml
    python scripts/run_simulation.py --config config/examples/cfl_search.yaml

All options of the ``amrwave`` console script are accepted.
"""

import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from amrwave.app import main


if __name__ == "__main__":
    sys.exit(main())
