import os
from collections import namedtuple

from Core import history
from Core.parser import expand_echo_escapes
from Core.pathsearch import find_executable

# Text streams a builtin reads from and writes to
Streams = namedtuple("Streams", ["stdin", "stdout", "stderr"])


def builtin_echo(args, context, streams):
    """echo [-e] args..."""
    expand = bool(args) and args[0] == "-e"
    if expand:
        args = [expand_echo_escapes(arg) for arg in args[1:]]
    streams.stdout.write(" ".join(args) + "\n")
    return 0


def builtin_exit(args, context, streams):
    """Ask the read loop to stop; the shell exits with the given code"""
    code = 0
    if args:
        try:
            code = int(args[0])
        except ValueError:
            streams.stderr.write(f"exit: {args[0]}: numeric argument required\n")
            code = 2
    context.request_exit(code)
    return code & 0xFF


def builtin_pwd(args, context, streams):
    try:
        cwd = os.getcwd()
    except OSError:
        streams.stderr.write("pwd: error retrieving current directory\n")
        return 1
    streams.stdout.write(cwd + "\n")
    return 0


def builtin_cd(args, context, streams):
    """Change directory"""
    path = args[0] if args else "~"
    if path == "~" or path.startswith("~/"):
        path = context.home + path[1:]
    try:
        os.chdir(path)
        return 0
    except OSError:
        streams.stderr.write(f"cd: {path}: No such file or directory\n")
        return 1


def builtin_type(args, context, streams):
    status = 0
    for name in args:
        if name in BUILTINS:
            streams.stdout.write(f"{name} is a shell builtin\n")
            continue
        path = find_executable(name)
        if path:
            streams.stdout.write(f"{name} is {path}\n")
        else:
            streams.stderr.write(f"{name}: not found\n")
            status = 1
    return status


def builtin_history(args, context, streams):
    """
    history [n]       : list history, or only the last n entries
    history -r FILE   : read FILE into history
    history -w FILE   : write the whole history to FILE
    history -a FILE   : append entries added since the last -a/-w
    """
    file_ops = {
        "-r": history.read_history_from,
        "-w": history.write_history_to,
        "-a": history.append_history_to,
    }
    if args and args[0] in file_ops:
        if len(args) < 2:
            streams.stderr.write(f"history: {args[0]}: option requires a file argument\n")
            return 2
        try:
            file_ops[args[0]](args[1])
        except OSError as e:
            streams.stderr.write(f"history: {args[1]}: {e.strerror}\n")
            return 1
        except ValueError as e:
            streams.stderr.write(f"history: {args[1]}: {e}\n")
            return 1
        return 0

    count = None
    if args:
        try:
            count = int(args[0])
        except ValueError:
            streams.stderr.write(f"history: {args[0]}: numeric argument required\n")
            return 2
    history.show_history(streams.stdout, count)
    return 0


BUILTINS = {
    "cd": builtin_cd,
    "echo": builtin_echo,
    "exit": builtin_exit,
    "pwd": builtin_pwd,
    "type": builtin_type,
    "history": builtin_history,
}


def is_builtin(name):
    return name in BUILTINS


def run_builtin(name, args, context, streams):
    """Run a builtin and return its exit status."""
    status = BUILTINS[name](args, context, streams)
    streams.stdout.flush()
    streams.stderr.flush()
    return status
