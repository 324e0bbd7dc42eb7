from __future__ import annotations

import io

import pytest

from doc_drive.config import DocDriveConfig
from doc_drive.runtime import DocDriveRuntime
from doc_drive.shell import DocDriveShell


@pytest.fixture
def shell_io(runtime):
    stdin = io.StringIO()
    stdout = io.StringIO()
    shell = DocDriveShell(runtime, stdin=stdin, stdout=stdout)
    yield shell, stdin, stdout
    shell._loop.close()


def _run(shell, *lines):
    for line in lines:
        shell.postcmd(shell.onecmd(line), line)


def test_create_list_and_open(shell_io):
    shell, _, stdout = shell_io

    _run(shell, 'create a.md "first body"', "create b.md second", "ls", "open 1")

    output = stdout.getvalue()
    assert "* Successfully uploaded 1 file" in output
    assert "  0  a.md  (#1)" in output
    assert "  1  b.md  (#2)" in output
    assert "[2/2] b.md\nsecond" in output


def test_navigation_bounds_are_reported(shell_io):
    shell, _, stdout = shell_io

    _run(shell, "create a.md one", "create b.md two", "ls", "open 1", "next", "prev", "prev")

    output = stdout.getvalue()
    assert "Already at the last document." in output
    assert "[1/2] a.md\none" in output
    assert "Already at the first document." in output


def test_edit_and_save(shell_io, runtime):
    shell, _, stdout = shell_io

    _run(shell, "create a.md one", "ls", "open 0", "edit", "append two", "save renamed.md")

    output = stdout.getvalue()
    assert "[1/1] a.md (editing)" in output
    assert "* File updated successfully." in output
    assert "[1/1] renamed.md\none\ntwo" in output
    assert runtime.documents.get(0).name == "renamed.md"


def test_rm_asks_before_deleting(shell_io, runtime):
    shell, stdin, stdout = shell_io
    _run(shell, "create a.md one", "ls", "open 0")

    stdin.write("n\n")
    stdin.seek(0)
    _run(shell, "rm")
    assert len(runtime.documents) == 1
    assert 'Are you sure you want to delete "a.md"? [y/N]' in stdout.getvalue()

    stdin.truncate(0)
    stdin.seek(0)
    stdin.write("y\n")
    stdin.seek(0)
    _run(shell, "rm")

    assert len(runtime.documents) == 0
    assert "(viewer closed)" in stdout.getvalue()


def test_logs_and_orphans(shell_io, metadata):
    shell, _, stdout = shell_io

    _run(shell, "logs")
    assert "No logs found" in stdout.getvalue()

    metadata.fail("insert")
    _run(shell, "create a.md one")
    metadata.heal()
    _run(shell, "create b.md two", "logs", "orphans")

    output = stdout.getvalue()
    assert "! Uploaded a.md but failed to record it" in output
    assert "document_created  b.md" in output
    assert "Examined 2 blobs and 1 records" in output
    assert "orphaned blob:" in output


def test_quit_stops_loop(shell_io):
    shell, _, _ = shell_io

    assert shell.onecmd("quit") is True


def test_notifications_print_once_after_history_wraps():
    config = DocDriveConfig.default()
    config.observability.notification_history = 2
    runtime = DocDriveRuntime.bootstrap(config)
    stdout = io.StringIO()
    shell = DocDriveShell(runtime, stdin=io.StringIO(), stdout=stdout)

    for message in ("one", "two", "three", "four", "five"):
        runtime.notifications.info(message)
    _run(shell, "show", "show")
    shell._loop.close()

    output = stdout.getvalue()
    assert "* one" not in output
    assert "* three" not in output
    assert output.count("* four") == 1
    assert output.count("* five") == 1
