import os
import sys
import readline

from config import HISTORY_FILE, MAX_HISTORY

# Số entry đã được ghi ra file bởi history -a / -w
_written_upto = 0


def init_readline(completer=None):
    """Cấu hình readline để hoạt động giống terminal Linux"""
    try:
        # history được thêm thủ công trong main_loop
        readline.set_auto_history(False)
        if completer is not None:
            readline.set_completer(completer)
            readline.set_completer_delims(" \t\n")

        if not sys.stdin.isatty():
            return

        readline.parse_and_bind("tab: complete")

        # Phím mũi tên lên/xuống
        readline.parse_and_bind("\\e[A: previous-history")
        readline.parse_and_bind("\\e[B: next-history")

        # Ctrl+Left/Right để nhảy giữa các từ
        readline.parse_and_bind("\\e[1;5D: backward-word")
        readline.parse_and_bind("\\e[1;5C: forward-word")

        readline.parse_and_bind("set editing-mode emacs")
        readline.parse_and_bind("set show-all-if-ambiguous on")

    except Exception as e:
        print(f"Warning: Could not configure readline: {e}", file=sys.stderr)


def save_history(path=HISTORY_FILE):
    """Lưu history ra file"""
    try:
        readline.set_history_length(MAX_HISTORY)
        readline.write_history_file(path)
    except OSError as e:
        print(f"Warning: Could not save history: {e}", file=sys.stderr)


def load_history(path=HISTORY_FILE):
    """Load history từ file"""
    global _written_upto
    try:
        if os.path.exists(path):
            readline.read_history_file(path)
            readline.set_history_length(MAX_HISTORY)
    except OSError as e:
        print(f"Warning: Could not load history: {e}", file=sys.stderr)
    _written_upto = readline.get_current_history_length()


def add_to_history(line):
    """Thêm command vào history"""
    if line.strip():
        readline.add_history(line)


def clear_history():
    global _written_upto
    readline.clear_history()
    _written_upto = 0


def history_entries():
    hlen = readline.get_current_history_length()
    return [readline.get_history_item(i) for i in range(1, hlen + 1)]


def show_history(stream, count=None):
    """In history dạng '    N  command', chỉ count entry cuối nếu có"""
    entries = history_entries()
    start = len(entries) - count if count else 0
    start = max(start, 0)
    for number, entry in enumerate(entries[start:], start=start + 1):
        stream.write(f"{number:>5}  {entry}\n")


def read_history_from(path):
    """history -r: thêm từng dòng của file vào history"""
    # byte không hợp lệ -> U+FFFD
    with open(os.path.expanduser(path), errors="replace") as f:
        for line in f:
            add_to_history(line.rstrip("\n"))


def write_history_to(path):
    """history -w: ghi toàn bộ history, ghi đè file"""
    global _written_upto
    entries = history_entries()
    with open(os.path.expanduser(path), "w") as f:
        f.writelines(entry + "\n" for entry in entries)
    _written_upto = len(entries)


def append_history_to(path):
    """history -a: chỉ ghi thêm các entry mới kể từ lần -a/-w trước"""
    global _written_upto
    entries = history_entries()
    with open(os.path.expanduser(path), "a") as f:
        f.writelines(entry + "\n" for entry in entries[min(_written_upto, len(entries)):])
    _written_upto = len(entries)
