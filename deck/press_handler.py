"""
press_handler.py - Short/long press detection for a single key.
"""
import threading


class ButtonPressHandler:
    """
    Classify a press/release pair as a short or long press.

    Key down arms a timer of `long_press_delay` seconds. Releasing before it
    fires calls `on_short_press(release_event)`; if it fires first,
    `on_long_press(press_event)` is called and the following release is ignored.
    """
    def __init__(self, on_short_press, on_long_press, long_press_delay=1.0):
        self.on_short_press = on_short_press
        self.on_long_press = on_long_press
        self.long_press_delay = long_press_delay
        self._lock = threading.Lock()
        self._long_press_timer = None

    @property
    def pending(self):
        return self._long_press_timer is not None

    def handle_key_down(self, event):
        with self._lock:
            # only one timer per key; a repeated press restarts it
            if self._long_press_timer:
                self._long_press_timer.cancel()
            timer = threading.Timer(self.long_press_delay, self._fire_long_press, args=(event,))
            timer.daemon = True
            self._long_press_timer = timer
            timer.start()

    def handle_key_up(self, event):
        with self._lock:
            timer = self._long_press_timer
            if not timer:
                return
            timer.cancel()
            self._long_press_timer = None
        self.on_short_press(event)

    def cancel(self):
        with self._lock:
            if self._long_press_timer:
                self._long_press_timer.cancel()
                self._long_press_timer = None

    def _fire_long_press(self, event):
        with self._lock:
            if self._long_press_timer is not threading.current_thread():
                # released or re-pressed while this timer was firing
                return
            self._long_press_timer = None
        try:
            self.on_long_press(event)
        except Exception as e:
            print(f"[ERROR] Long press action failed: {e}")
