"""
settings.py - Per-button settings for ScriptDeck.

Holds the settings record stored in the profile for each key, the parsing
of schedule intervals and the dependent-field rules of the configuration form.
"""
import re
import time
from dataclasses import dataclass, asdict, replace

SUPPORTED_EXTENSIONS = (".py", ".ps1")

# JSON key in the profile -> attribute name
_FIELD_NAMES = {
    "file": "file",
    "parameters": "parameters",
    "terminal": "terminal",
    "schedule": "schedule",
    "autostart": "autostart",
    "trueImage": "true_image",
    "falseImage": "false_image",
    "separateScript": "separate_script",
    "actionId": "action_id",
    "countdown": "countdown",
    "separateFile": "separate_file",
    "separateParameters": "separate_parameters",
    "separateSchedule": "separate_schedule",
    "separateScheduleCheckbox": "separate_schedule_checkbox",
}

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def parse_schedule(value):
    """Return the interval in seconds, or None when no schedule is configured.

    Only a leading integer is read, so "5", " 5 " and "5s" all give 5.
    Empty, non-numeric and non-positive values mean no schedule.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    match = _LEADING_INT.match(str(value))
    if not match:
        return None
    interval = int(match.group(1))
    return interval if interval > 0 else None


def is_supported_script(path):
    return bool(path) and path.endswith(SUPPORTED_EXTENSIONS)


def generate_action_id(now=None):
    """Timestamp identity in the form DD.MM.YYYY HH:MM:SS."""
    return time.strftime("%d.%m.%Y %H:%M:%S", time.localtime(now))


def _as_bool(value):
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes", "on")
    return bool(value)


@dataclass
class ButtonSettings:
    file: str = ""
    parameters: str = ""
    terminal: bool = False
    schedule: str = ""
    autostart: bool = False
    true_image: str = ""
    false_image: str = ""
    separate_script: bool = False
    action_id: str = ""
    countdown: bool = False
    separate_file: str = ""
    separate_parameters: str = ""
    separate_schedule: str = ""
    separate_schedule_checkbox: bool = False

    @classmethod
    def from_dict(cls, data):
        """Build settings from a profile entry, ignoring unknown keys."""
        values = {}
        for json_key, attr in _FIELD_NAMES.items():
            if json_key not in data or data[json_key] is None:
                continue
            raw = data[json_key]
            if isinstance(cls.__dataclass_fields__[attr].default, bool):
                values[attr] = _as_bool(raw)
            else:
                values[attr] = str(raw)
        return cls(**values)

    def to_dict(self):
        attrs = asdict(self)
        return {json_key: attrs[attr] for json_key, attr in _FIELD_NAMES.items()}

    @property
    def schedule_interval(self):
        return parse_schedule(self.schedule)

    @property
    def separate_schedule_interval(self):
        return parse_schedule(self.separate_schedule)

    @property
    def has_script(self):
        return is_supported_script(self.file)

    @property
    def has_separate_script(self):
        return is_supported_script(self.separate_file)

    def normalized(self):
        """Return a copy with the configuration form's dependent-field rules applied."""
        s = replace(self)

        if not s.file:
            return ButtonSettings(action_id=s.action_id)

        if s.separate_schedule_checkbox:
            s.schedule = ""
        else:
            s.separate_schedule = ""

        if s.schedule_interval is None:
            s.autostart = False
            s.countdown = False

        if not (s.true_image or s.false_image):
            s.separate_script = False

        if not s.separate_script:
            s.separate_file = ""
            s.separate_parameters = ""
            s.separate_schedule_checkbox = False
            s.separate_schedule = ""

        return s
