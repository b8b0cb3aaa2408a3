"""
Entry point for: python3 -m player

Launches the headless signage player (pairing loop and heartbeat).
"""

from .runner import main

if __name__ == "__main__":
    raise SystemExit(main())
