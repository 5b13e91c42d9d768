"""
Turns a stage's RedirectionTarget into a descriptor the executor can hand to
a child process or a builtin.
"""

import os

from Core.command import TargetKind, WriteMode
from Core.errors import RedirectionError

FILE_PERMISSIONS = 0o644


class StreamHandle:
    """
    One output stream of a stage.

    fd is None when the stage inherits the shell's own stream. Handles that
    own their descriptor close it exactly once.
    """

    def __init__(self, fd=None, owned=False, is_pipe=False):
        self.fd = fd
        self.owned = owned
        self.is_pipe = is_pipe

    @property
    def inherited(self):
        return self.fd is None

    def close(self):
        if self.owned and self.fd is not None:
            os.close(self.fd)
        self.fd = None
        self.owned = False

    def __repr__(self):
        return f"StreamHandle(fd={self.fd}, owned={self.owned})"


def open_target(path, mode):
    """Open path for writing, creating it if needed. Returns the raw descriptor."""
    flags = os.O_WRONLY | os.O_CREAT
    flags |= os.O_APPEND if mode is WriteMode.APPEND else os.O_TRUNC
    try:
        return os.open(os.path.expanduser(path), flags, FILE_PERMISSIONS)
    except OSError as e:
        raise RedirectionError(path, e.strerror or str(e)) from e


def resolve(target, pipe_fd=None):
    """
    Resolve a RedirectionTarget into a StreamHandle.

    TO_PIPE needs the pipe end the executor allocated for that edge.
    Raises RedirectionError when a file target cannot be opened.
    """
    if target.kind is TargetKind.INHERIT:
        return StreamHandle()
    if target.kind is TargetKind.TO_PIPE:
        if pipe_fd is None:
            raise ValueError("TO_PIPE target needs a pipe descriptor")
        return StreamHandle(pipe_fd, owned=True, is_pipe=True)
    return StreamHandle(open_target(target.path, target.mode), owned=True)


def resolve_stage(descriptor):
    """
    Open the file redirections of one stage.

    Returns (stdout_handle, stderr_handle). When both streams name the same
    target (&>) the file is opened once and the stderr handle borrows the
    stdout descriptor.
    """
    stdout = resolve(descriptor.stdout) if descriptor.stdout.is_file else StreamHandle()
    if descriptor.stderr.is_file and descriptor.stderr == descriptor.stdout:
        return stdout, StreamHandle(stdout.fd, owned=False)
    try:
        stderr = resolve(descriptor.stderr) if descriptor.stderr.is_file else StreamHandle()
    except RedirectionError:
        stdout.close()
        raise
    return stdout, stderr
