"""
script_runner.py - Runs script commands off the device thread.

Each command runs in its own daemon thread; the outcome is handed to a
completion callback as a ScriptResult. Errors are carried in the result,
never raised to the caller.
"""
import subprocess
import threading
from dataclasses import dataclass
from typing import Optional

from actions.command import ScriptError, ScriptExecutionFailed, ScriptLaunchFailed


@dataclass
class ScriptResult:
    command: str
    exit_code: Optional[int] = None
    stdout: str = ""
    stderr: str = ""
    error: Optional[ScriptError] = None

    @property
    def ok(self):
        return self.error is None


class ScriptRunner:
    def __init__(self, timeout=None):
        self.timeout = timeout

    def run(self, command, callback):
        """Start `command` in the background and call `callback(result)` when done."""
        t = threading.Thread(target=self._run, args=(command, callback), daemon=True)
        t.start()
        return t

    def execute(self, command):
        """Run `command` synchronously and return its ScriptResult."""
        print(f"[SCRIPT] Running: {command}")
        try:
            proc = subprocess.run(
                command,
                shell=True,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            return ScriptResult(command, error=ScriptLaunchFailed(f"Timed out after {e.timeout}s"))
        except (OSError, subprocess.SubprocessError) as e:
            return ScriptResult(command, error=ScriptLaunchFailed(str(e)))

        error = None
        if proc.returncode != 0:
            error = ScriptExecutionFailed(proc.returncode, proc.stderr)
        elif proc.stderr.strip():
            print(f"[WARN] Script wrote to stderr: {proc.stderr.strip()[:200]}")
        return ScriptResult(command, proc.returncode, proc.stdout, proc.stderr, error)

    def _run(self, command, callback):
        result = self.execute(command)
        try:
            callback(result)
        except Exception as e:
            print(f"[ERROR] Script completion handler failed: {e}")
