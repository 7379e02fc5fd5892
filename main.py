"""
JellyPot Bridge - Entry point for direct execution and frozen builds.
This file serves as a simple entry point that imports from the package.
For the actual implementation, see jellypot_bridge/main.py
"""
import sys

from jellypot_bridge.cli import main

if __name__ == "__main__":
    sys.exit(main())
