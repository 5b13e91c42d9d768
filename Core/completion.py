import readline

from Core.builtin import BUILTINS
from Core.pathsearch import list_executables


class CommandCompleter:
    """
    readline completer for the first word of a line: builtins plus every
    executable on PATH. Arguments are not completed.
    """

    def __init__(self, directories=None):
        self.commands = sorted(set(BUILTINS) | set(list_executables(directories)))
        self._matches = []

    def candidates(self, text, line):
        before_word = line[:len(line) - len(text)] if line.endswith(text) else line
        if before_word.strip():
            return []
        return [name + " " for name in self.commands if name.startswith(text)]

    def complete(self, text, state):
        if state == 0:
            self._matches = self.candidates(text, readline.get_line_buffer()[:readline.get_endidx()])
        if state < len(self._matches):
            return self._matches[state]
        return None
