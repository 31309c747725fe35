"""
run_script_controller.py - Run-script action controller for ScriptDeck.

Receives key lifecycle events (appear, settings changed, disappear, key
down/up) and keeps, per button identity, the recurring schedule, the
autostart flag and the icon currently shown on the key.
"""
import threading

from actions import icons
from actions.command import (
    CommandBuilder,
    ScriptLaunchFailed,
    UnsupportedFileType,
    interpret_output,
)
from actions.script_runner import ScriptRunner
from controllers.schedule import Schedule
from deck.press_handler import ButtonPressHandler

AUTOSTART_DELAY = 1.5
SEPARATE_RUN_DELAY = 1.0
LONG_PRESS_FEEDBACK_DELAY = 1.5


def _start_timer(delay, fn):
    t = threading.Timer(delay, fn)
    t.daemon = True
    t.start()
    return t


class _PendingCall:
    """A deferred callback that can be cancelled before it fires."""
    def __init__(self, fn):
        self.fn = fn
        self.cancelled = False
        self.timer = None

    def cancel(self):
        self.cancelled = True
        if self.timer is not None:
            self.timer.cancel()

    def __call__(self):
        if not self.cancelled:
            self.fn()


class ButtonState:
    """Everything tracked for one button identity."""
    def __init__(self):
        self.schedule = None
        # None until the identity is first seen; then True only if autostart fired
        self.autostarted = None
        self.current_image = None
        self.image_pinned = False
        self.file = None
        self.pending = []

    @property
    def scheduled(self):
        return self.schedule is not None

    def cancel_timers(self):
        if self.schedule:
            self.schedule.cancel()
            self.schedule = None
        for call in self.pending:
            call.cancel()
        self.pending = []


class ButtonRegistry:
    """Button identity -> ButtonState."""
    def __init__(self):
        self._states = {}

    def get(self, identity):
        state = self._states.get(identity)
        if state is None:
            state = ButtonState()
            self._states[identity] = state
        return state

    def peek(self, identity):
        return self._states.get(identity)

    def __contains__(self, identity):
        return identity in self._states

    def __len__(self):
        return len(self._states)

    def values(self):
        return list(self._states.values())


class RunScriptController:
    """Handles every key bound to the run-script action."""
    def __init__(self, runner=None, command_builder=None, long_press_delay=1.0,
                 tick_seconds=1.0, defer=None):
        self.runner = runner or ScriptRunner()
        self.commands = command_builder or CommandBuilder()
        self.long_press_delay = long_press_delay
        self.tick_seconds = tick_seconds
        self._defer = defer or _start_timer
        self.registry = ButtonRegistry()
        # key index -> identity of the buttons currently on the deck
        self._visible = {}
        self._press_handlers = {}
        self._lock = threading.RLock()

    # --- lifecycle events ---

    def will_appear(self, button, settings):
        identity = settings.action_id
        with self._lock:
            self._visible[button.key] = identity
            state = self.registry.get(identity)
            self._track_file(state, settings)
            if state.current_image is None:
                state.current_image = icons.LOGO

            first_appearance = state.autostarted is None
            interval = None
            separate = False
            if first_appearance and settings.autostart and settings.has_script \
                    and settings.schedule_interval:
                state.autostarted = True
                interval = settings.schedule_interval
                button.set_image(icons.AUTOSTART)
            elif first_appearance and settings.separate_schedule_checkbox \
                    and settings.separate_schedule_interval and settings.has_separate_script:
                state.autostarted = True
                interval = settings.separate_schedule_interval
                separate = True
                button.set_image(icons.SEPARATE_AUTOSTART)
            else:
                if first_appearance:
                    state.autostarted = False
                self._update_image(button, settings, running=False)

            if interval:
                print(f"[SCHEDULE] Autostart for '{identity}' every {interval}s")

                def _autostart():
                    with self._lock:
                        self.start_schedule(button, settings, interval)
                        if not separate:
                            self._update_image(button, settings, running=True)

                self._later(state, AUTOSTART_DELAY, _autostart)

    def did_receive_settings(self, button, settings):
        identity = settings.action_id
        with self._lock:
            self._visible[button.key] = identity
            state = self.registry.get(identity)
            if state.autostarted is None:
                state.autostarted = False
            self._track_file(state, settings)
            for call in state.pending:
                call.cancel()
            state.pending = []
            self.stop_schedule(button, settings, forced=True)
            button.set_title("")
            self._update_image(button, settings, running=False)

    def will_disappear(self, button, settings):
        identity = settings.action_id
        with self._lock:
            if self._visible.get(button.key) == identity:
                del self._visible[button.key]
            handler = self._press_handlers.pop(button.key, None)
            if handler:
                handler.cancel()
            state = self.registry.peek(identity)
            if state:
                state.cancel_timers()

    def key_down(self, button, settings):
        self._press_handler(button).handle_key_down((button, settings))

    def key_up(self, button, settings):
        self._press_handler(button).handle_key_up((button, settings))

    def shutdown(self):
        with self._lock:
            for handler in self._press_handlers.values():
                handler.cancel()
            self._press_handlers.clear()
            for state in self.registry.values():
                state.cancel_timers()
            self._visible.clear()

    def set_long_press_delay(self, delay):
        """Change the long-press delay of every key, including keys already pressed once."""
        with self._lock:
            self.long_press_delay = delay
            for handler in self._press_handlers.values():
                handler.long_press_delay = delay

    # --- press actions ---

    def short_press(self, button, settings):
        if not settings.has_script:
            return
        with self._lock:
            if self.stop_schedule(button, settings):
                return
            self._update_image(button, settings, running=True)

            if settings.separate_schedule_checkbox:
                interval = settings.separate_schedule_interval
            else:
                interval = settings.schedule_interval

            if interval and not settings.separate_schedule_checkbox:
                self.start_schedule(button, settings, interval)
                return

            run_separate = settings.has_separate_script
            # the primary output only drives the icon when no separate script exists
            self.execute(button, settings, settings.file, settings.parameters,
                         pin_allowed=not run_separate)

            def _after_run():
                with self._lock:
                    if run_separate:
                        self.execute(button, settings, settings.separate_file,
                                     settings.separate_parameters, pin_allowed=True)
                    self._update_image(button, settings, running=False)

            self._later(self.registry.get(settings.action_id), SEPARATE_RUN_DELAY, _after_run)

    def long_press(self, button, settings):
        interval = settings.separate_schedule_interval
        if not settings.has_separate_script or not interval:
            return
        with self._lock:
            state = self.registry.get(settings.action_id)
            start = False
            if state.scheduled:
                self.stop_schedule(button, settings, forced=True)
                button.set_image(icons.SCHEDULE_ENDED)
            else:
                button.set_image(icons.SCHEDULE_STARTED)
                start = True

            def _after_feedback():
                with self._lock:
                    button.set_image(state.current_image)
                    if start:
                        self.start_schedule(button, settings, interval)

            self._later(state, LONG_PRESS_FEEDBACK_DELAY, _after_feedback)

    # --- scheduling ---

    def start_schedule(self, button, settings, interval):
        """Run the script now and then every `interval` seconds."""
        identity = settings.action_id
        with self._lock:
            state = self.registry.get(identity)
            if state.schedule:
                state.schedule.cancel()
                state.schedule = None

            if settings.separate_schedule_checkbox:
                file, parameters = settings.separate_file, settings.separate_parameters
            else:
                file, parameters = settings.file, settings.parameters

            if settings.countdown:
                button.set_title(str(interval))

            def _run():
                with self._lock:
                    if state.schedule is schedule:
                        self.execute(button, settings, file, parameters,
                                     pin_allowed=settings.separate_script)

            def _countdown(remaining):
                with self._lock:
                    if state.schedule is schedule:
                        button.set_title(str(remaining))

            schedule = Schedule(
                interval,
                _run,
                on_countdown=_countdown if settings.countdown else None,
                tick_seconds=self.tick_seconds,
            )
            state.schedule = schedule
            self.execute(button, settings, file, parameters, pin_allowed=settings.separate_script)
            schedule.start()
            print(f"[SCHEDULE] Started '{identity}' every {interval}s")
            return schedule

    def stop_schedule(self, button, settings, forced=False):
        """
        Stop the schedule of this button's identity.
        Without `forced`, only a schedule of the primary script is stopped.
        Returns True if a schedule was stopped, False if there was nothing to stop.
        """
        identity = settings.action_id
        with self._lock:
            state = self.registry.peek(identity)
            if state is None or not state.scheduled:
                return False
            if settings.separate_schedule_checkbox and not forced:
                return False
            state.schedule.cancel()
            state.schedule = None
            button.set_title("")
            self._update_image(button, settings, running=False)
            print(f"[SCHEDULE] Stopped '{identity}'")
            return True

    def is_scheduled(self, identity):
        state = self.registry.peek(identity)
        return bool(state and state.scheduled)

    # --- execution ---

    def execute(self, button, settings, file, parameters="", pin_allowed=False):
        """Start one run of `file`; the result updates the key when it completes."""
        try:
            command = self.commands.build(file, parameters, settings.terminal)
        except UnsupportedFileType as e:
            print(f"[WARN] Key {button.key}: {e}")
            with self._lock:
                self.registry.get(settings.action_id).current_image = icons.INVALID
                button.set_image(icons.INVALID)
            return None
        except ScriptLaunchFailed as e:
            self._show_error(button, e)
            return None

        def _on_finished(result):
            self._on_script_finished(button, settings, pin_allowed, result)

        return self.runner.run(command, _on_finished)

    def _on_script_finished(self, button, settings, pin_allowed, result):
        identity = settings.action_id
        with self._lock:
            if self._visible.get(button.key) != identity:
                return
            if result.error:
                self._show_error(button, result.error)
                return

            state = self.registry.get(identity)
            # a countdown owns the title while its schedule runs
            if not (settings.countdown and state.scheduled):
                button.set_title("")
            outcome = interpret_output(result.stdout)
            if outcome is True and settings.true_image and pin_allowed:
                self._pin_image(button, state, settings.true_image)
            elif outcome is False and settings.false_image and pin_allowed:
                self._pin_image(button, state, settings.false_image)
            else:
                state.image_pinned = False

    # --- helpers ---

    def _show_error(self, button, error):
        print(f"[ERROR] Key {button.key}: {error}")
        try:
            button.set_title(error.summary())
        except Exception as e:
            print(f"[WARN] Failed to show error on key {button.key}: {e}")

    def _pin_image(self, button, state, image):
        state.current_image = image
        state.image_pinned = True
        button.set_image(image)

    def _update_image(self, button, settings, running):
        state = self.registry.get(settings.action_id)
        if state.image_pinned:
            return
        state.current_image = icons.state_icon(settings, running)
        button.set_image(state.current_image)

    def _track_file(self, state, settings):
        # a new file selection releases an icon pinned by script output
        if state.file is not None and state.file != settings.file:
            state.image_pinned = False
        state.file = settings.file

    def _later(self, state, delay, fn):
        call = None

        def _fire():
            with self._lock:
                if call in state.pending:
                    state.pending.remove(call)
            try:
                fn()
            except Exception as e:
                print(f"[ERROR] Deferred key update failed: {e}")

        call = _PendingCall(_fire)
        state.pending.append(call)
        call.timer = self._defer(delay, call)
        return call

    def _press_handler(self, button):
        with self._lock:
            handler = self._press_handlers.get(button.key)
            if handler is None:
                handler = ButtonPressHandler(
                    lambda event: self.short_press(*event),
                    lambda event: self.long_press(*event),
                    self.long_press_delay,
                )
                self._press_handlers[button.key] = handler
            return handler
