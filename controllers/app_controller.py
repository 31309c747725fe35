"""
app_controller.py - Main application controller for ScriptDeck.

Orchestrates device management, key rendering and the run-script controller,
and reloads the profile when its file changes.
"""
import os
import time
import asyncio

from actions.command import CommandBuilder
from actions.script_runner import ScriptRunner
from controllers.run_script_controller import RunScriptController
from deck.device_manager import StreamDeckDeviceManager
from deck.profile_loader import load_profile
from render.display import Renderer


class AppController:
    """Orchestrates the hardware, rendering and script controller for ScriptDeck."""
    def __init__(self, config_path, assets_dir="assets", command_builder=None, script_timeout=None):
        self.config_path = config_path
        self.profile = load_profile(config_path)
        self._profile_mtime = self._mtime()

        # Init hardware manager first
        self.device_manager = StreamDeckDeviceManager()
        deck = self.device_manager.open(self.profile.brightness)

        self.renderer = Renderer(deck, assets_dir)

        self.scripts = RunScriptController(
            runner=ScriptRunner(timeout=script_timeout),
            command_builder=command_builder or CommandBuilder.from_env(),
            long_press_delay=self.profile.long_press_delay,
        )

        # Show the profile's keys and start listening for presses
        self.device_manager.initialize(self.profile, self.scripts, self.renderer)

        self._tick_rate = 1.0  # profile change check once per second

    def run(self):
        """Start the main loop; runs until interrupted."""
        try:
            asyncio.run(self._run_loop())
        except KeyboardInterrupt:
            pass
        finally:
            self.shutdown()

    async def _run_loop(self):
        print("[APP] Main loop started.")
        next_tick = time.time()
        while True:
            self.reload_profile_if_changed()

            next_tick += self._tick_rate
            sleep_for = next_tick - time.time()
            if sleep_for > 0:
                await asyncio.sleep(sleep_for)

    def reload_profile_if_changed(self):
        mtime = self._mtime()
        if mtime is None or mtime == self._profile_mtime:
            return False
        self._profile_mtime = mtime
        try:
            profile = load_profile(self.config_path)
        except (OSError, ValueError) as e:
            print(f"[WARN] Failed to reload profile {self.config_path}: {e}")
            return False
        # the loader may have written ids back
        self._profile_mtime = self._mtime()
        self.profile = profile
        self.scripts.set_long_press_delay(profile.long_press_delay)
        self.device_manager.apply_profile(profile)
        return True

    def _mtime(self):
        try:
            return os.path.getmtime(self.config_path)
        except OSError:
            return None

    def shutdown(self):
        print("[APP] Shutting down.")
        self.scripts.shutdown()
        self.device_manager.shutdown()
