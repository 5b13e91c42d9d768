"""
Exceptions raised while parsing and running a command line.

None of these terminate the shell: the read loop reports them and goes on
to the next line.
"""


class ShellError(Exception):
    """Base class for every shell error."""

    def __init__(self, message):
        super().__init__(message)
        self.message = message


class ParseError(ShellError):
    """
    The line could not be turned into a pipeline (unterminated quote,
    redirection without a filename, empty pipeline stage).
    """

    def __init__(self, line, reason):
        super().__init__(reason)
        self.line = line
        self.reason = reason

    def __str__(self):
        return f"parse error: {self.reason}"


class RedirectionError(ShellError):
    """A redirection target could not be opened for writing."""

    def __init__(self, path, reason):
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason


class CommandNotFound(ShellError):
    """No executable matches the program name."""

    def __init__(self, name):
        super().__init__(f"{name}: command not found")
        self.name = name


class SpawnError(ShellError):
    """The OS refused to start a process for a pipeline stage."""

    def __init__(self, name, reason):
        super().__init__(f"{name}: {reason}")
        self.name = name
        self.reason = reason


class PipeError(ShellError):
    """The OS could not allocate a pipe between two stages."""

    def __init__(self, reason):
        super().__init__(f"cannot create pipe: {reason}")
        self.reason = reason
