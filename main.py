#!/usr/bin/env python3
"""
Main entry point for Mars Rover Explorer integration.

:copyright: (c) 2025 by Meir Miyara.
:license: MPL-2.0, see LICENSE for more details.
"""

import sys

if __name__ == "__main__":
    from uc_intg_marsrover.driver import run

    try:
        run()
    except Exception as e:
        print(f"Integration failed: {e}")
        sys.exit(1)
