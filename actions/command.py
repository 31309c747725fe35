"""
command.py - Command building and script error types for ScriptDeck.

Maps a script file to the interpreter command line used to run it and
defines the errors reported back to a key when a script cannot run.
"""
import ntpath
import os

DEFAULT_PYTHON = "python"
DEFAULT_POWERSHELL = "powershell.exe"
DEFAULT_TERMINAL = 'start cmd.exe /k "cd /d "{dir}" && {command}"'

TRUE_VALUES = ("True", "true", "1")
FALSE_VALUES = ("False", "false", "0")


class ScriptError(Exception):
    """Base class for errors shown on a key instead of being raised to the device."""

    def summary(self, limit=12):
        text = str(self).strip().splitlines()
        text = text[0] if text else type(self).__name__
        return text if len(text) <= limit else text[:limit - 1] + "…"


class UnsupportedFileType(ScriptError):
    def __init__(self, path):
        super().__init__(f"Unsupported script type: {path}")
        self.path = path

    def summary(self, limit=12):
        return "Invalid"


class ScriptLaunchFailed(ScriptError):
    def __init__(self, reason):
        super().__init__(reason)
        self.reason = reason


class ScriptExecutionFailed(ScriptError):
    def __init__(self, exit_code, stderr_excerpt=""):
        self.exit_code = exit_code
        self.stderr_excerpt = (stderr_excerpt or "").strip()[-200:]
        message = f"Exit {exit_code}"
        if self.stderr_excerpt:
            message += f": {self.stderr_excerpt}"
        super().__init__(message)

    def summary(self, limit=12):
        return f"Exit {self.exit_code}"


class CommandBuilder:
    """Builds shell command lines for .py and .ps1 scripts."""
    def __init__(self, python=None, powershell=None, terminal_template=None):
        self.python = python or DEFAULT_PYTHON
        self.powershell = powershell or DEFAULT_POWERSHELL
        self.terminal_template = terminal_template or DEFAULT_TERMINAL

    @classmethod
    def from_env(cls):
        return cls(
            python=os.getenv("SCRIPTDECK_PYTHON"),
            powershell=os.getenv("SCRIPTDECK_POWERSHELL"),
            terminal_template=os.getenv("SCRIPTDECK_TERMINAL"),
        )

    def build(self, file_path, parameters="", in_terminal=False):
        """
        Return the full command for a script.
        Raises ScriptLaunchFailed for an empty path and UnsupportedFileType
        for anything other than .py or .ps1.
        """
        if not file_path:
            raise ScriptLaunchFailed("No script file configured")

        if file_path.endswith(".py"):
            command = f'{self.python} "{file_path}"'
        elif file_path.endswith(".ps1"):
            command = f'{self.powershell} -ExecutionPolicy Bypass -File "{file_path}"'
        else:
            raise UnsupportedFileType(file_path)

        parameters = (parameters or "").strip()
        if parameters:
            command = f"{command} {parameters}"

        if in_terminal:
            # ntpath splits on both separators; the wrapper targets cmd.exe
            file_dir = ntpath.dirname(file_path) or "."
            return self.terminal_template.format(dir=file_dir, command=command)
        return command


def interpret_output(stdout):
    """True/False for the fixed truthy/falsy literals, None for anything else."""
    output = (stdout or "").strip()
    if output in TRUE_VALUES:
        return True
    if output in FALSE_VALUES:
        return False
    return None
