import os

SHELL_NAME = "pipeshell"
PROMPT = "$ "

# History
HISTORY_FILE = os.path.expanduser(os.environ.get("HISTFILE") or "~/.pipeshell_history")
MAX_HISTORY = 1000

# Exit status tự tổng hợp cho stage không chạy được
COMMAND_NOT_FOUND_STATUS = 127
CANNOT_EXECUTE_STATUS = 126
PARSE_ERROR_STATUS = 2
REDIRECTION_ERROR_STATUS = 1
SHELL_ERROR_STATUS = 1
