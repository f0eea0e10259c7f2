"""Version information for the Malbouche clock scheduler."""

__version__ = "1.0.0"
__version_info__ = (1, 0, 0)

# Release notes for this version
RELEASE_NOTES = """
Malbouche Clock Scheduler v1.0.0

Headless scheduler that fires user-authored clock events against an
ESP32-driven analog clock.

Key Features:
- Weekly event evaluation with a per-event cooldown
- Event cache with a durable fallback for backend outages
- Two-phase execution: store update first, then clock command
- Automatic detection of stepper and 28BYJ-48 prototype firmware
- Schedule-conflict aware event authoring client
- HTTP health endpoints and a bounded execution log
- Configuration via YAML and MALBOUCHE_* environment variables
"""
