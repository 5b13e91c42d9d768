import os
import shutil
import stat

import psutil
import pytest

from Core import executor
from Core.errors import PipeError, RedirectionError
from Core.executor import ExecutionMode, execute_pipeline, execution_mode, exit_status
from Core.parser import parse_command
from Core.redirection import StreamHandle

pytestmark = pytest.mark.skipif(
    any(shutil.which(p) is None for p in ("sh", "cat", "true", "false", "sort", "wc", "head")),
    reason="needs a POSIX userland",
)


def run(line, context):
    return execute_pipeline(parse_command(line), context)


def open_fds():
    return psutil.Process().num_fds()


def test_builtin_feeds_external(context, in_tmp_cwd):
    assert run("echo hello world | cat > out.txt", context) == 0
    assert (in_tmp_cwd / "out.txt").read_text() == "hello world\n"


def test_external_to_external_streams(context, in_tmp_cwd):
    assert run("printf 'a\\nc\\nb\\n' | sort -r > sorted.txt", context) == 0
    assert (in_tmp_cwd / "sorted.txt").read_text() == "c\nb\na\n"


def test_large_output_goes_through_pipe(context, in_tmp_cwd):
    assert run("head -c 1000000 /dev/zero | wc -c > count.txt", context) == 0
    assert (in_tmp_cwd / "count.txt").read_text().strip() == "1000000"


def test_status_is_last_stage(context, capfd):
    assert run("false | echo ok", context) == 0
    assert capfd.readouterr().out == "ok\n"
    assert run("false | true | echo ok", context) == 0
    assert capfd.readouterr().out == "ok\n"
    assert run("true | false", context) == 1
    assert run("echo x | false | true", context) == 0


def test_single_external_inherits_stdout(context, capfd):
    assert run("sh -c 'echo from child'", context) == 0
    assert capfd.readouterr().out == "from child\n"


def test_stderr_is_not_chained(context, in_tmp_cwd):
    line = "sh -c 'echo out; echo err 1>&2' 2> err.txt | cat > out.txt"
    assert run(line, context) == 0
    assert (in_tmp_cwd / "out.txt").read_text() == "out\n"
    assert (in_tmp_cwd / "err.txt").read_text() == "err\n"


def test_combined_redirect(context, in_tmp_cwd):
    assert run("sh -c 'echo out; echo err 1>&2' &> all.txt", context) == 0
    assert sorted((in_tmp_cwd / "all.txt").read_text().splitlines()) == ["err", "out"]
    assert run("echo more &>> all.txt", context) == 0
    assert (in_tmp_cwd / "all.txt").read_text().endswith("more\n")


def test_in_place_builtin_redirect(context, in_tmp_cwd):
    run("echo first > f.txt", context)
    run("echo -e 'second\\tline' >> f.txt", context)
    assert (in_tmp_cwd / "f.txt").read_text() == "first\nsecond\tline\n"


def test_command_not_found(context, in_tmp_cwd):
    assert run("no_such_command_xyz arg 2> err.txt", context) == 127
    assert (in_tmp_cwd / "err.txt").read_text() == "pipeshell: no_such_command_xyz: command not found\n"


def test_command_not_found_does_not_stop_later_stages(context, capfd):
    assert run("no_such_command_xyz | echo ok", context) == 0
    captured = capfd.readouterr()
    assert captured.out == "ok\n"
    assert "pipeshell: no_such_command_xyz: command not found" in captured.err


def test_unexecutable_file_is_spawn_failure(context, in_tmp_cwd, capfd):
    bad = in_tmp_cwd / "bad"
    bad.write_bytes(b"\x00\x01\x02 not a program")
    bad.chmod(bad.stat().st_mode | stat.S_IXUSR)
    assert run("./bad", context) == 126
    assert "bad" in capfd.readouterr().err


def test_signal_death_maps_to_128_plus_signal(context):
    assert run("sh -c 'kill -9 $$'", context) == 137


def test_redirection_failure_starts_nothing(context, in_tmp_cwd, monkeypatch):
    started = []
    monkeypatch.setattr(executor, "start_stage", lambda *a, **kw: started.append(a))
    before = open_fds()
    with pytest.raises(RedirectionError):
        run("echo a > ok.txt | cat > missing/dir/out.txt", context)
    assert started == []
    assert open_fds() == before
    assert (in_tmp_cwd / "ok.txt").exists()


def test_redirection_to_readonly_file(context, in_tmp_cwd):
    target = in_tmp_cwd / "locked.txt"
    target.write_text("")
    target.chmod(0o444)
    if os.access(target, os.W_OK):
        pytest.skip("running with privileges that ignore file modes")
    with pytest.raises(RedirectionError):
        run("echo a > locked.txt", context)


def test_failure_mid_start_still_waits_and_closes(context, monkeypatch):
    real_start = executor.start_stage
    calls = []

    def flaky_start(stage, *args, **kwargs):
        calls.append(stage.program)
        if len(calls) == 2:
            raise RuntimeError("boom")
        return real_start(stage, *args, **kwargs)

    monkeypatch.setattr(executor, "start_stage", flaky_start)
    before = open_fds()
    with pytest.raises(RuntimeError):
        run("true | cat | cat", context)
    assert calls == ["true", "cat"]
    assert open_fds() == before
    assert psutil.Process().children() == []


def test_no_descriptor_leaks(context, in_tmp_cwd):
    before = open_fds()
    for _ in range(200):
        run("echo a | cat | cat > out.txt", context)
        run("no_such_command_xyz 2> err.txt | cat > out.txt", context)
        run("echo b &> both.txt", context)
    assert open_fds() == before
    assert (in_tmp_cwd / "out.txt").read_text() == ""
    assert (in_tmp_cwd / "both.txt").read_text() == "b\n"


def test_in_place_cd_changes_shell_directory(context, in_tmp_cwd):
    (in_tmp_cwd / "sub").mkdir()
    assert run("cd sub", context) == 0
    assert os.getcwd() == str(in_tmp_cwd / "sub")


def test_isolated_cd_does_not_change_shell_directory(context, in_tmp_cwd):
    (in_tmp_cwd / "sub").mkdir()
    assert run("cd sub | cat", context) == 0
    assert os.getcwd() == str(in_tmp_cwd)


def test_isolated_exit_does_not_stop_shell(context):
    assert run("echo x | exit 3", context) == 3
    assert not context.exit_requested
    assert run("exit 4", context) == 4
    assert context.exit_requested
    assert context.exit_code == 4


def test_isolated_builtin_output_reaches_next_stage(context, in_tmp_cwd):
    assert run("type echo | cat > type.txt", context) == 0
    assert (in_tmp_cwd / "type.txt").read_text() == "echo is a shell builtin\n"
    assert run("pwd | cat > pwd.txt", context) == 0
    assert (in_tmp_cwd / "pwd.txt").read_text() == str(in_tmp_cwd) + "\n"


def test_execution_mode():
    read_fd, write_fd = os.pipe()
    try:
        pipe_in = StreamHandle(read_fd, owned=True, is_pipe=True)
        pipe_out = StreamHandle(write_fd, owned=True, is_pipe=True)
        plain = StreamHandle()
        assert execution_mode(plain, plain) is ExecutionMode.IN_PLACE
        assert execution_mode(pipe_in, plain) is ExecutionMode.ISOLATED
        assert execution_mode(plain, pipe_out) is ExecutionMode.ISOLATED
    finally:
        os.close(read_fd)
        os.close(write_fd)


@pytest.mark.parametrize("returncode, status", [(0, 0), (1, 1), (-9, 137), (-15, 143)])
def test_exit_status(returncode, status):
    assert exit_status(returncode) == status


def refuse(*args):
    raise BlockingIOError(11, "Resource temporarily unavailable")


def test_fork_failure_is_scoped_to_the_builtin_stage(context, capfd, monkeypatch):
    monkeypatch.setattr(os, "fork", refuse)
    before = open_fds()
    assert run("echo a | cat", context) == 0
    assert run("true | echo a", context) == 126
    err = capfd.readouterr().err
    assert "pipeshell: echo: Resource temporarily unavailable" in err
    assert open_fds() == before
    assert psutil.Process().children() == []


def test_pipe_allocation_failure(context, in_tmp_cwd, monkeypatch):
    started = []
    monkeypatch.setattr(os, "pipe", refuse)
    monkeypatch.setattr(executor, "start_stage", lambda *a, **kw: started.append(a))
    before = open_fds()
    with pytest.raises(PipeError):
        run("echo a > f.txt | cat", context)
    assert started == []
    assert open_fds() == before


def test_executable_in_working_directory(context, in_tmp_cwd):
    tool = in_tmp_cwd / "mytool"
    tool.write_text("#!/bin/sh\necho from mytool \"$@\"\n")
    tool.chmod(tool.stat().st_mode | stat.S_IXUSR)
    assert run("mytool x > out.txt", context) == 0
    assert (in_tmp_cwd / "out.txt").read_text() == "from mytool x\n"
