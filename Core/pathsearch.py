import os


def path_directories(path_value=None):
    """PATH split into directories, in search order."""
    if path_value is None:
        path_value = os.environ.get("PATH", os.defpath)
    return [d for d in path_value.split(os.pathsep) if d]


def is_executable(path):
    return os.path.isfile(path) and os.access(path, os.X_OK)


def find_executable(name, directories=None):
    """
    Resolve a program name to an executable path.

    A name that is itself an executable file (absolute or relative to the
    working directory) is used directly. Otherwise names without a slash are
    looked up in each PATH directory in order. Returns None when nothing
    matches.
    """
    if not name:
        return None
    if is_executable(name):
        # Popen searches PATH for a bare executable, so anchor it to the cwd
        return name if os.sep in name else os.path.abspath(name)
    if os.sep in name:
        return None

    if directories is None:
        directories = path_directories()
    for directory in directories:
        candidate = os.path.join(directory, name)
        if is_executable(candidate):
            return candidate
    return None


def list_executables(directories=None):
    """Names of every executable file found on PATH (unsorted, may repeat)."""
    if directories is None:
        directories = path_directories()
    names = []
    for directory in directories:
        try:
            entries = os.listdir(directory)
        except OSError:
            continue
        for entry in entries:
            if is_executable(os.path.join(directory, entry)):
                names.append(entry)
    return names
