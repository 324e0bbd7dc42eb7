"""Interactive terminal browser for the document drive."""

from __future__ import annotations

import argparse
import asyncio
import cmd
import logging
import shlex
from pathlib import Path
from typing import Any, Awaitable, List, Optional, TypeVar

from .config import DocDriveConfig
from .errors import GatewayError
from .models import Notification, RawFile
from .runtime import DocDriveRuntime
from .services.viewer import Closed, Editing, Viewing

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DocDriveShell(cmd.Cmd):
    intro = "Document drive shell. Type 'help' for commands."
    prompt = "docs> "

    def __init__(self, runtime: DocDriveRuntime, stdin: Any = None, stdout: Any = None):
        super().__init__(stdin=stdin, stdout=stdout)
        if stdin is not None:
            self.use_rawinput = False
        self.runtime = runtime
        self.navigator = runtime.navigator()
        self._loop = asyncio.new_event_loop()
        self._notifications_seen = runtime.notifications.total

    # Helpers ------------------------------------------------------------
    def _print(self, message: str) -> None:
        self.stdout.write(message + "\n")

    def _parse(self, arg: str) -> List[str]:
        try:
            return shlex.split(arg)
        except ValueError as exc:
            self._print(f"Parse error: {exc}")
            return []

    def _run(self, awaitable: Awaitable[T]) -> T:
        return self._loop.run_until_complete(awaitable)

    def _flush_notifications(self) -> None:
        log = self.runtime.notifications
        fresh = log.total - self._notifications_seen
        self._notifications_seen = log.total
        if fresh <= 0:
            return
        for note in log.recent(fresh):
            self._print(self._format_notification(note))

    @staticmethod
    def _format_notification(note: Notification) -> str:
        marker = "!" if note.is_error else "*"
        return f"{marker} {note.message}"

    def _confirm(self, message: str) -> Optional[bool]:
        self.stdout.write(f"{message} [y/N] ")
        self.stdout.flush()
        answer = self.stdin.readline()
        if not answer:
            return None
        return answer.strip().lower() in {"y", "yes"}

    def _within_list(self) -> bool:
        state = self.navigator.state
        return isinstance(state, Viewing) and state.index < len(self.runtime.documents)

    def _show_state(self) -> None:
        state = self.navigator.state
        if isinstance(state, Closed):
            self._print("(viewer closed)")
            return
        total = len(self.runtime.documents)
        position = f"[{state.index + 1}/{total}]" if state.index < total else "[stale]"
        header = f"{position} {state.document.name}"
        if isinstance(state, Editing):
            self._print(f"{header} (editing)")
            self._print(state.draft)
            return
        self._print(header)
        if isinstance(state, Viewing) and state.content is not None:
            self._print(state.content)

    def postcmd(self, stop: bool, line: str) -> bool:
        self._flush_notifications()
        return stop

    # Listing ------------------------------------------------------------
    def do_ls(self, arg: str) -> None:
        """ls -- refresh and list documents"""

        try:
            entries = self._run(self.runtime.documents.refresh())
        except GatewayError:
            return
        if not entries:
            self._print("No documents.")
            return
        for index, entry in enumerate(entries):
            self._print(f"{index:>3}  {entry.name}  (#{entry.id})")

    do_refresh = do_ls

    # Create / upload ----------------------------------------------------
    def do_create(self, arg: str) -> None:
        """create NAME TEXT... -- create a document from the given text"""

        tokens = self._parse(arg)
        if len(tokens) < 2:
            self._print("Usage: create NAME TEXT...")
            return
        self._run(self.runtime.operations.create(tokens[0], " ".join(tokens[1:])))

    def do_upload(self, arg: str) -> None:
        """upload PATH [PATH ...] -- upload local files as documents"""

        paths = [Path(token).expanduser() for token in self._parse(arg)]
        if not paths:
            self._print("Usage: upload PATH [PATH ...]")
            return
        batch = []
        for path in paths:
            try:
                batch.append(RawFile(name=path.name, content=path.read_bytes()))
            except OSError as exc:
                self._print(f"Skipping {path}: {exc}")
        if batch:
            report = self._run(self.runtime.operations.upload(batch))
            self._print(f"{report.succeeded} uploaded, {report.failed} failed")

    # Viewer -------------------------------------------------------------
    def do_open(self, arg: str) -> None:
        """open INDEX -- open the document at INDEX of the last listing"""

        try:
            index = int(arg.strip())
        except ValueError:
            self._print("Usage: open INDEX")
            return
        self._run(self.navigator.select(index))
        self._show_state()

    def do_next(self, arg: str) -> None:
        """next -- open the following document"""

        if self._within_list() and not self.navigator.has_next:
            self._print("Already at the last document.")
            return
        self._run(self.navigator.next())
        self._show_state()

    def do_prev(self, arg: str) -> None:
        """prev -- open the preceding document"""

        if self._within_list() and not self.navigator.has_previous:
            self._print("Already at the first document.")
            return
        self._run(self.navigator.previous())
        self._show_state()

    def do_show(self, arg: str) -> None:
        """show -- print the open document"""

        self._show_state()

    def do_edit(self, arg: str) -> None:
        """edit -- start editing the open document"""

        if not isinstance(self.navigator.state, Viewing):
            self._print("Open a document first.")
            return
        self.navigator.edit()
        self._show_state()

    def do_draft(self, arg: str) -> None:
        """draft TEXT -- replace the draft text"""

        if not isinstance(self.navigator.state, Editing):
            self._print("Not editing.")
            return
        self.navigator.set_draft(arg.replace("\\n", "\n"))

    def do_append(self, arg: str) -> None:
        """append TEXT -- add a line to the draft"""

        state = self.navigator.state
        if not isinstance(state, Editing):
            self._print("Not editing.")
            return
        separator = "" if not state.draft or state.draft.endswith("\n") else "\n"
        self.navigator.set_draft(state.draft + separator + arg)

    def do_save(self, arg: str) -> None:
        """save [NAME] -- store the draft, optionally renaming the document"""

        if not isinstance(self.navigator.state, Editing):
            self._print("Not editing.")
            return
        self._run(self.navigator.save(arg.strip() or None))
        self._show_state()

    def do_cancel(self, arg: str) -> None:
        """cancel -- discard the draft"""

        self._run(self.navigator.cancel())
        self._show_state()

    def do_rm(self, arg: str) -> None:
        """rm -- delete the open document (asks for confirmation)"""

        if not isinstance(self.navigator.state, Viewing):
            self._print("Open a document first.")
            return
        self._run(self.navigator.delete(self._confirm))
        self._show_state()

    def do_close(self, arg: str) -> None:
        """close -- close the viewer"""

        self.navigator.close()
        self._show_state()

    # Ops ----------------------------------------------------------------
    def do_logs(self, arg: str) -> None:
        """logs [LIMIT] -- show recent activity"""

        limit = int(arg) if arg.strip().isdigit() else 20
        entries = self.runtime.activity_service.list_entries(limit=limit)
        if not entries:
            self._print("No logs found")
            return
        for entry in entries:
            self._print(f"{entry.created_at.isoformat(timespec='seconds')}  {entry.event_type}  {entry.details}")

    def do_orphans(self, arg: str) -> None:
        """orphans -- report blobs without records and records without blobs"""

        try:
            report = self._run(self.runtime.auditor.scan())
        except GatewayError as exc:
            self._print(f"Audit failed: {exc.message}")
            return
        self._print(f"Examined {report.examined_blobs} blobs and {report.examined_records} records")
        for key in report.orphaned_blobs:
            self._print(f"  orphaned blob: {key}")
        for entry in report.dangling_records:
            self._print(f"  record without content: #{entry.id} {entry.name} -> {entry.storage_path}")
        if report.consistent:
            self._print("  consistent")

    def do_quit(self, arg: str) -> bool:
        """quit -- exit the shell"""

        self._loop.close()
        return True

    do_exit = do_quit
    do_EOF = do_quit

    def emptyline(self) -> bool:
        return False


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Browse and edit documents stored in the document drive.")
    parser.add_argument("--data-dir", default=None, help="Directory holding blobs and the metadata file")
    parser.add_argument("--log-level", default=None, help="Logging level (default from DOC_DRIVE_LOG_LEVEL or INFO)")
    args = parser.parse_args(argv)

    config = DocDriveConfig.local(args.data_dir) if args.data_dir else DocDriveConfig.from_env()
    level = (args.log_level or config.observability.log_level).upper()
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format="[%(asctime)s] %(levelname)s %(message)s")

    shell = DocDriveShell(DocDriveRuntime.bootstrap(config))
    try:
        shell._run(shell.runtime.documents.refresh())
    except GatewayError as exc:
        logger.warning("Initial document listing failed: %s", exc.message)
    shell.cmdloop()


if __name__ == "__main__":
    main()
