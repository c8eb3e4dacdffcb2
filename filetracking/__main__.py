"""Entry point for File Tracking.

Usage:
    python -m filetracking start     Run in the foreground (Linux)
    python -m filetracking install   Install the background service
                                     (Windows service or macOS launchd)
"""

from filetracking.service import main

if __name__ == "__main__":
    main()
