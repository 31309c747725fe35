"""
device_manager.py - Stream Deck hardware manager for ScriptDeck.

Handles device initialization and turns key callbacks and profile changes
into lifecycle events for the run-script controller.
"""
from StreamDeck.DeviceManager import DeviceManager as HardwareDeviceManager

from deck.key_action import KeyAction
from deck.profile_loader import diff_buttons


class StreamDeckDeviceManager:
    """Manage Stream Deck hardware and dispatch key events to the controller."""
    def __init__(self):
        self.deck = None
        self.controller = None
        self.renderer = None
        # key -> ButtonSettings of the active profile
        self.buttons = {}
        # key -> KeyAction
        self._actions = {}

    def open(self, brightness=60):
        devices = HardwareDeviceManager().enumerate()
        if not devices:
            raise RuntimeError("No Stream Decks found")

        self.deck = devices[0]
        self.deck.open()
        self.deck.reset()
        self.deck.set_brightness(brightness)

        print(f"[OK] Connected to Stream Deck: {self.deck.id()} ({self.deck.key_count()} keys)")
        return self.deck

    def initialize(self, profile, controller, renderer):
        """Bind the controller and show every key of the profile."""
        self.controller = controller
        self.renderer = renderer
        if renderer and self.deck is not None:
            renderer.deck = self.deck

        for key, settings in sorted(profile.buttons.items()):
            self._appear(key, settings)

        if self.deck is not None:
            self.deck.set_key_callback(self._button_callback)

    def apply_profile(self, profile):
        """Send appear/disappear/settings-changed events for a reloaded profile."""
        appeared, disappeared, changed = diff_buttons(self.buttons, profile.buttons)
        for key in disappeared:
            self._disappear(key)
        for key in changed:
            settings = profile.buttons[key]
            self.buttons[key] = settings
            self._prefetch_icons(settings)
            try:
                self.controller.did_receive_settings(self._action(key), settings)
            except Exception as e:
                print(f"[ERROR] Button {key} settings update failed: {e}")
        for key in appeared:
            self._appear(key, profile.buttons[key])
        if appeared or disappeared or changed:
            print(f"[PROFILE] Reloaded: {len(appeared)} added, {len(disappeared)} removed, "
                  f"{len(changed)} changed")

    def shutdown(self):
        print("[DEVICE] Shutting down Stream Deck.")
        for key in list(self.buttons):
            self._disappear(key)
        if self.deck:
            try:
                self.deck.reset()
                self.deck.close()
            except Exception as e:
                print(f"[WARN] Failed to cleanly close Stream Deck: {e}")

    def _action(self, key):
        action = self._actions.get(key)
        if action is None:
            action = KeyAction(key, self.renderer)
            self._actions[key] = action
        return action

    def _appear(self, key, settings):
        if self.deck is not None and key >= self.deck.key_count():
            print(f"[WARN] Profile button {key} is outside this deck's {self.deck.key_count()} keys")
            return
        self.buttons[key] = settings
        self._prefetch_icons(settings)
        try:
            self.controller.will_appear(self._action(key), settings)
        except Exception as e:
            print(f"[ERROR] Button {key} appear failed: {e}")

    def _prefetch_icons(self, settings):
        if self.renderer:
            self.renderer.prefetch([settings.true_image, settings.false_image])

    def _disappear(self, key):
        settings = self.buttons.pop(key, None)
        if settings is None:
            return
        try:
            self.controller.will_disappear(self._action(key), settings)
        except Exception as e:
            print(f"[ERROR] Button {key} disappear failed: {e}")
        if self.renderer:
            self.renderer.clear_button(key)

    def _button_callback(self, deck, key, state):
        """
        Forward key presses and releases. State True=press, False=release.
        """
        settings = self.buttons.get(key)
        if settings is None:
            return
        try:
            if state:
                self.controller.key_down(self._action(key), settings)
            else:
                self.controller.key_up(self._action(key), settings)
        except Exception as e:
            print(f"[ERROR] Button {key} action failed: {e}")
