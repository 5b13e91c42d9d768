"""
Pipeline executor.

One line runs through these steps in order, and none is skipped even when a
stage fails:

    open redirections -> allocate pipes -> start stages
        -> close parent descriptors -> wait for every stage

The pipeline's status is the status of its last stage.
"""

import contextlib
import os
import signal
import subprocess
import sys
from enum import Enum

from config import CANNOT_EXECUTE_STATUS, COMMAND_NOT_FOUND_STATUS, SHELL_NAME
from Core.builtin import Streams, is_builtin, run_builtin
from Core.command import TO_PIPE
from Core.errors import CommandNotFound, PipeError, RedirectionError, SpawnError
from Core.pathsearch import find_executable
from Core.redirection import StreamHandle, resolve, resolve_stage


class ExecutionMode(Enum):
    IN_PLACE = "in_place"    # builtin runs inside the shell process
    ISOLATED = "isolated"    # builtin runs in a forked child wired to pipes


def execution_mode(stdin, stdout):
    """
    A builtin can only mutate the shell when it runs in the shell itself.
    Once either side of the stage is a pipe it has to run isolated.
    """
    if stdin.is_pipe or stdout.is_pipe:
        return ExecutionMode.ISOLATED
    return ExecutionMode.IN_PLACE


def exit_status(returncode):
    """Map a negative 'killed by signal' code to the shell convention 128+N."""
    if returncode < 0:
        return 128 - returncode
    return returncode


class ProcessJob:
    def __init__(self, process):
        self.process = process

    def wait(self):
        return exit_status(self.process.wait())


class ForkedJob:
    def __init__(self, pid):
        self.pid = pid

    def wait(self):
        _, status = os.waitpid(self.pid, 0)
        return exit_status(os.waitstatus_to_exitcode(status))


class FinishedJob:
    """A stage that completed (or failed) before the wait step."""

    def __init__(self, status):
        self.status = status

    def wait(self):
        return self.status


def _report(message, stderr):
    line = message + "\n"
    if stderr.inherited:
        sys.stderr.write(line)
        sys.stderr.flush()
    else:
        os.write(stderr.fd, line.encode())


def _open_redirections(pipeline):
    """Open every stage's redirection files before anything is started."""
    handles = []
    try:
        for stage in pipeline:
            handles.append(resolve_stage(stage))
    except RedirectionError:
        _close_all(handles)
        raise
    return handles


def _close_all(handle_pairs):
    for pair in handle_pairs:
        for handle in pair:
            handle.close()


def _run_in_place(stage, stdout, stderr, context):
    out = sys.stdout if stdout.inherited else open(stdout.fd, "w", closefd=False)
    err = sys.stderr if stderr.inherited else open(stderr.fd, "w", closefd=False)
    try:
        return run_builtin(stage.program, stage.args, context, Streams(sys.stdin, out, err))
    finally:
        if not stdout.inherited:
            out.close()
        if not stderr.inherited:
            err.close()


def _run_isolated(stage, stdin, stdout, stderr, context, open_fds):
    """
    Fork a child that rebinds fds 0/1/2 to the stage's handles, runs the
    builtin and exits with its status. The child gets a copy of context.
    """
    sys.stdout.flush()
    sys.stderr.flush()
    try:
        pid = os.fork()
    except OSError as e:
        raise SpawnError(stage.program, e.strerror or str(e)) from e
    if pid:
        return ForkedJob(pid)

    status = 1
    try:
        for handle, target in ((stdin, 0), (stdout, 1), (stderr, 2)):
            if not handle.inherited:
                os.dup2(handle.fd, target)
        # descriptors of other stages must not stay open here
        for fd in open_fds:
            if fd > 2:
                with contextlib.suppress(OSError):
                    os.close(fd)
        streams = Streams(sys.stdin, open(1, "w", closefd=False), open(2, "w", closefd=False))
        status = run_builtin(stage.program, stage.args, context, streams)
    except BrokenPipeError:
        status = 128 + signal.SIGPIPE
    except Exception as e:
        with contextlib.suppress(OSError):
            os.write(2, f"{SHELL_NAME}: {stage.program}: {e}\n".encode())
    finally:
        os._exit(status)


def _start_external(stage, stdin, stdout, stderr):
    path = find_executable(stage.program)
    if path is None:
        raise CommandNotFound(stage.program)
    try:
        process = subprocess.Popen(
            stage.argv,
            executable=path,
            stdin=stdin.fd,
            stdout=stdout.fd,
            stderr=stderr.fd,
        )
    except OSError as e:
        raise SpawnError(stage.program, e.strerror or str(e)) from e
    return ProcessJob(process)


def start_stage(stage, stdin, stdout, stderr, context, open_fds=()):
    """
    Start one stage and return a job whose wait() gives its exit status.

    Errors scoped to this stage (command not found, spawn failure) are
    reported on the stage's stderr and turned into a finished job.
    """
    if is_builtin(stage.program) and execution_mode(stdin, stdout) is ExecutionMode.IN_PLACE:
        return FinishedJob(_run_in_place(stage, stdout, stderr, context))

    try:
        if is_builtin(stage.program):
            return _run_isolated(stage, stdin, stdout, stderr, context, open_fds)
        return _start_external(stage, stdin, stdout, stderr)
    except CommandNotFound as e:
        _report(f"{SHELL_NAME}: {e.message}", stderr)
        return FinishedJob(COMMAND_NOT_FOUND_STATUS)
    except SpawnError as e:
        _report(f"{SHELL_NAME}: {e.message}", stderr)
        return FinishedJob(CANNOT_EXECUTE_STATUS)


def execute_pipeline(pipeline, context):
    """
    Run every stage of pipeline and return the last stage's exit status.

    Raises RedirectionError, before any stage is started, when a
    redirection file cannot be opened, and PipeError when the OS has no
    pipe left to give.
    """
    handles = _open_redirections(pipeline)
    pipes = []
    jobs = []
    try:
        for _ in range(len(pipeline) - 1):
            try:
                read_fd, write_fd = os.pipe()
            except OSError as e:
                raise PipeError(e.strerror or str(e)) from e
            pipes.append((resolve(TO_PIPE, read_fd), resolve(TO_PIPE, write_fd)))

        last = len(pipeline) - 1
        for index, stage in enumerate(pipeline):
            stdin = pipes[index - 1][0] if index > 0 else StreamHandle()
            stdout = pipes[index][1] if index < last else handles[index][0]
            stderr = handles[index][1]

            open_fds = [h.fd for pair in pipes + handles for h in pair if h.fd is not None]
            jobs.append(start_stage(stage, stdin, stdout, stderr, context, open_fds))

            # the stage owns these now
            stdin.close()
            stdout.close()
            for handle in handles[index]:
                handle.close()
    finally:
        _close_all(pipes)
        _close_all(handles)
        statuses = [job.wait() for job in jobs]

    return statuses[-1]
