"""
schedule.py - Recurring script timer for one key.

A single ticker counts down once per second and re-runs the script when the
counter reaches zero. With a countdown callback the remaining seconds are
reported on every tick.
"""
import threading


class Schedule:
    def __init__(self, interval, on_run, on_countdown=None, tick_seconds=1.0):
        if interval <= 0:
            raise ValueError(f"Schedule interval must be positive, got {interval}")
        self.interval = interval
        self.on_run = on_run
        self.on_countdown = on_countdown
        self.tick_seconds = tick_seconds
        self.remaining = interval
        self._stop_event = threading.Event()
        self._thread = None

    @property
    def active(self):
        return self._thread is not None and not self._stop_event.is_set()

    def start(self):
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._tick_loop, daemon=True)
        self._thread.start()

    def cancel(self):
        """Stop ticking. Safe to call more than once."""
        self._stop_event.set()

    def tick(self):
        """Advance the counter by one tick."""
        self.remaining -= 1
        if self.remaining <= 0:
            self.remaining = self.interval
            if self.on_countdown:
                self.on_countdown(self.remaining)
            self.on_run()
        elif self.on_countdown:
            self.on_countdown(self.remaining)

    def _tick_loop(self):
        while not self._stop_event.wait(self.tick_seconds):
            try:
                self.tick()
            except Exception as e:
                print(f"[ERROR] Scheduled run failed: {e}")
