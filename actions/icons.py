"""
icons.py - Icon paths used by the run-script action.

Paths are relative to the assets directory.
"""

LOGO = "imgs/plugin/script-runner-logo.png"
INVALID = "imgs/plugin/invalid.png"
AUTOSTART = "imgs/plugin/script-autostart.png"
SEPARATE_AUTOSTART = "imgs/plugin/separate-script-autostart.png"
SCHEDULE_STARTED = "imgs/plugin/script-schedule-started.png"
SCHEDULE_ENDED = "imgs/plugin/script-schedule-ended.png"


def state_icon(settings, running=False):
    """Icon for the idle or running state of a key's primary script."""
    file = settings.file
    if not file:
        return LOGO

    prefix = "run-" if running else ""
    kind = "schedule" if settings.schedule_interval else "script"
    if file.endswith(".py"):
        return f"imgs/plugin/{prefix}python-{kind}.png"
    if file.endswith(".ps1"):
        return f"imgs/plugin/{prefix}powershell-{kind}.png"
    return INVALID
