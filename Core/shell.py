import sys

from config import PARSE_ERROR_STATUS, PROMPT, REDIRECTION_ERROR_STATUS, SHELL_ERROR_STATUS, SHELL_NAME
from Core.completion import CommandCompleter
from Core.context import ShellContext
from Core.errors import ParseError, RedirectionError, ShellError
from Core.executor import execute_pipeline
from Core.history import add_to_history, init_readline, load_history, save_history
from Core.parser import parse_command


def run_line(line, context):
    """
    Parse and execute one line.
    Returns: exit status (also stored in context.last_status)
    """
    try:
        pipeline = parse_command(line)
        if pipeline is None:
            return context.last_status
        status = execute_pipeline(pipeline, context)
    except ParseError as e:
        print(f"{SHELL_NAME}: {e}", file=sys.stderr)
        status = PARSE_ERROR_STATUS
    except RedirectionError as e:
        print(f"{SHELL_NAME}: {e}", file=sys.stderr)
        status = REDIRECTION_ERROR_STATUS
    except ShellError as e:
        print(f"{SHELL_NAME}: {e}", file=sys.stderr)
        status = SHELL_ERROR_STATUS

    context.last_status = status
    return status


def main_loop(context=None):
    """
    Main shell loop.
    Returns: the code the shell should exit with
    """
    if context is None:
        context = ShellContext()

    init_readline(CommandCompleter().complete)
    load_history()

    try:
        while not context.exit_requested:
            try:
                line = input(PROMPT)
            except EOFError:
                print()
                break
            except KeyboardInterrupt:
                print()
                continue

            if not line.strip():
                continue

            add_to_history(line)
            run_line(line, context)
    finally:
        save_history()

    return context.exit_code if context.exit_requested else context.last_status
