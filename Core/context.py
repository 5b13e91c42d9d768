import os
from dataclasses import dataclass


@dataclass
class ShellContext:
    """
    Shell-wide state that survives from one line to the next.

    Owned by the read loop and passed to builtins that run in the shell
    itself. Builtins run in a forked child only see the child's copy, so
    `cd` or `exit` there never reach the parent shell.
    """
    last_status: int = 0
    exit_requested: bool = False
    exit_code: int = 0

    @property
    def home(self):
        return os.environ.get("HOME") or os.path.expanduser("~")

    def request_exit(self, code):
        self.exit_requested = True
        self.exit_code = code & 0xFF
