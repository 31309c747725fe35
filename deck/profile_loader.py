"""
profile_loader.py - Loads and saves ScriptDeck profiles.

A profile is a JSON file:

    {
        "brightness": 60,
        "long_press_ms": 1000,
        "buttons": {
            "0": {"file": "C:/scripts/backup.py", "schedule": "300", ...}
        }
    }

Button settings are normalized on load and keys without an actionId get a
timestamp identity, which is written back to the file.
"""
import json
import os

from actions.settings import ButtonSettings, generate_action_id

DEFAULT_BRIGHTNESS = 60
DEFAULT_LONG_PRESS_MS = 1000


class Profile:
    def __init__(self, path, buttons=None, brightness=DEFAULT_BRIGHTNESS,
                 long_press_ms=DEFAULT_LONG_PRESS_MS):
        self.path = path
        # key index -> ButtonSettings
        self.buttons = buttons or {}
        self.brightness = brightness
        self.long_press_ms = long_press_ms

    @property
    def long_press_delay(self):
        return self.long_press_ms / 1000.0

    def to_dict(self):
        return {
            "brightness": self.brightness,
            "long_press_ms": self.long_press_ms,
            "buttons": {str(key): s.to_dict() for key, s in sorted(self.buttons.items())},
        }


def assign_missing_ids(buttons, now=None):
    """Give every button without an identity a unique timestamp id. Returns the keys changed."""
    used = {s.action_id for s in buttons.values() if s.action_id}
    changed = []
    for key in sorted(buttons):
        settings = buttons[key]
        if settings.action_id:
            continue
        base = generate_action_id(now)
        candidate = base
        n = 2
        while candidate in used:
            candidate = f"{base} ({n})"
            n += 1
        settings.action_id = candidate
        used.add(candidate)
        changed.append(key)
    return changed


def _read_int(config, name, default):
    value = config.get(name, default)
    if isinstance(value, bool):
        raise ValueError(f"'{name}' must be a number, got {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValueError(f"'{name}' must be a number, got {value!r}") from None


def load_profile(path):
    """Read a profile. Raises ValueError when the file is not a valid profile."""
    with open(path, 'r') as f:
        config = json.load(f)

    if not isinstance(config, dict):
        raise ValueError("Profile must be a JSON object")
    entries = config.get("buttons", {})
    if not isinstance(entries, dict):
        raise ValueError("'buttons' must map key numbers to settings")

    buttons = {}
    for key_str, entry in entries.items():
        try:
            key = int(key_str)
        except ValueError:
            print(f"[WARN] Ignoring button with non-numeric key '{key_str}'")
            continue
        if not isinstance(entry, dict):
            print(f"[WARN] Ignoring malformed settings for button {key}")
            continue
        buttons[key] = ButtonSettings.from_dict(entry).normalized()

    profile = Profile(
        path,
        buttons,
        brightness=_read_int(config, "brightness", DEFAULT_BRIGHTNESS),
        long_press_ms=_read_int(config, "long_press_ms", DEFAULT_LONG_PRESS_MS),
    )

    if assign_missing_ids(profile.buttons):
        try:
            save_profile(profile)
        except OSError as e:
            print(f"[WARN] Could not write button ids back to {path}: {e}")
    return profile


def save_profile(profile):
    tmp_path = profile.path + ".tmp"
    with open(tmp_path, 'w') as f:
        json.dump(profile.to_dict(), f, indent=2)
    os.replace(tmp_path, profile.path)


def diff_buttons(old, new):
    """
    Compare two key -> settings maps.
    Returns (appeared, disappeared, changed); a key whose identity changed is
    reported as disappeared and appeared.
    """
    appeared, disappeared, changed = [], [], []
    for key in sorted(set(old) | set(new)):
        before, after = old.get(key), new.get(key)
        if before is None:
            appeared.append(key)
        elif after is None:
            disappeared.append(key)
        elif before.action_id != after.action_id:
            disappeared.append(key)
            appeared.append(key)
        elif before != after:
            changed.append(key)
    return appeared, disappeared, changed
