import stat

from Core.completion import CommandCompleter


def make_completer(tmp_path, *names):
    for name in names:
        path = tmp_path / name
        path.write_text("#!/bin/sh\n")
        path.chmod(path.stat().st_mode | stat.S_IXUSR)
    return CommandCompleter([str(tmp_path)])


def test_commands_include_builtins_and_path(tmp_path):
    completer = make_completer(tmp_path, "exiftool", "ls")
    assert completer.commands == sorted({"cd", "echo", "exit", "pwd", "type", "history", "exiftool", "ls"})


def test_first_word_candidates(tmp_path):
    completer = make_completer(tmp_path, "exiftool")
    assert completer.candidates("ex", "ex") == ["exiftool ", "exit "]
    assert completer.candidates("ech", "  ech") == ["echo "]


def test_arguments_are_not_completed(tmp_path):
    completer = make_completer(tmp_path, "exiftool")
    assert completer.candidates("ex", "echo ex") == []


def test_duplicates_are_removed(tmp_path):
    (tmp_path / "other").mkdir()
    for directory in (tmp_path, tmp_path / "other"):
        path = directory / "tool"
        path.write_text("")
        path.chmod(path.stat().st_mode | stat.S_IXUSR)
    completer = CommandCompleter([str(tmp_path), str(tmp_path / "other")])
    assert completer.commands.count("tool") == 1
