"""Viewer navigation state machine.

The transition functions are pure: they take the current state and the
current document list and return the next state. A ``Viewing`` whose
``content`` is ``None`` is a target still waiting for its blob.
:class:`ViewerNavigator` performs the loads and saves those states call for.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Optional, Sequence, Union

from ..models import DocumentListEntry, Notification
from ..telemetry import Notifier
from .document_list import DocumentListCache
from .file_operations import ConfirmPrompt, FileOperations

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Closed:
    pass


@dataclass(frozen=True)
class Viewing:
    index: int
    document: DocumentListEntry
    content: Optional[str] = None

    @property
    def loaded(self) -> bool:
        return self.content is not None


@dataclass(frozen=True)
class Editing:
    index: int
    document: DocumentListEntry
    content: str
    draft: str


ViewerState = Union[Closed, Viewing, Editing]
Entries = Sequence[DocumentListEntry]

CLOSED = Closed()


# Pure transitions ----------------------------------------------------------

def select(state: ViewerState, index: int, entries: Entries) -> ViewerState:
    if isinstance(state, Editing) or not 0 <= index < len(entries):
        return state
    return Viewing(index=index, document=entries[index])


def step(state: ViewerState, delta: int, entries: Entries) -> ViewerState:
    if not isinstance(state, Viewing):
        return state
    if state.index >= len(entries):
        # The list shrank underneath us; the open position no longer exists.
        return CLOSED
    target = state.index + delta
    if not 0 <= target < len(entries):
        return state
    return Viewing(index=target, document=entries[target])


def next_document(state: ViewerState, entries: Entries) -> ViewerState:
    return step(state, 1, entries)


def previous_document(state: ViewerState, entries: Entries) -> ViewerState:
    return step(state, -1, entries)


def begin_edit(state: ViewerState) -> ViewerState:
    if isinstance(state, Viewing) and state.loaded:
        return Editing(index=state.index, document=state.document, content=state.content, draft=state.content)
    return state


def revise(state: ViewerState, draft: str) -> ViewerState:
    if isinstance(state, Editing):
        return replace(state, draft=draft)
    return state


def discard_edit(state: ViewerState) -> ViewerState:
    if isinstance(state, Editing):
        return Viewing(index=state.index, document=state.document, content=state.content)
    return state


def close(state: ViewerState) -> ViewerState:
    return CLOSED


def has_next(state: ViewerState, entries: Entries) -> bool:
    return isinstance(state, Viewing) and state.index + 1 < len(entries)


def has_previous(state: ViewerState, entries: Entries) -> bool:
    return isinstance(state, Viewing) and 0 < state.index < len(entries)


# Driver --------------------------------------------------------------------

class ViewerNavigator:
    """Tracks which document of the cached list is open."""

    def __init__(self, documents: DocumentListCache, operations: FileOperations, notifier: Notifier) -> None:
        self.documents = documents
        self.operations = operations
        self.notifier = notifier
        self.state: ViewerState = CLOSED
        self._generation = 0

    @property
    def has_next(self) -> bool:
        return has_next(self.state, self.documents.current())

    @property
    def has_previous(self) -> bool:
        return has_previous(self.state, self.documents.current())

    @property
    def current_document(self) -> Optional[DocumentListEntry]:
        if isinstance(self.state, (Viewing, Editing)):
            return self.state.document
        return None

    async def select(self, index: int) -> ViewerState:
        target = select(self.state, index, self.documents.current())
        if target is self.state:
            if not isinstance(self.state, Editing):
                self._unopenable()
            return self.state
        return await self._open(target)

    async def next(self) -> ViewerState:
        return await self._move(next_document(self.state, self.documents.current()))

    async def previous(self) -> ViewerState:
        return await self._move(previous_document(self.state, self.documents.current()))

    def edit(self) -> ViewerState:
        return self._transition(begin_edit(self.state))

    def set_draft(self, draft: str) -> ViewerState:
        # Typing into the draft does not invalidate in-flight saves.
        self.state = revise(self.state, draft)
        return self.state

    def close(self) -> ViewerState:
        return self._transition(close(self.state))

    async def save(self, name: Optional[str] = None) -> ViewerState:
        state = self.state
        if not isinstance(state, Editing):
            return state
        token = self._generation
        new_name = name or state.document.name
        outcome = await self.operations.update_content(
            state.document.id,
            new_name,
            state.draft,
            state.document.storage_path,
        )
        if token != self._generation:
            logger.debug("Ignoring save result for %s; viewer moved on", state.document.id)
            return self.state
        if not outcome:
            return self.state
        document = replace(state.document, name=new_name)
        current = self.state
        if isinstance(current, Editing) and current.draft != state.draft:
            # Edited again while saving: keep editing on top of what was stored.
            self.state = replace(current, document=document, content=state.draft)
            return self.state
        return self._transition(Viewing(index=state.index, document=document, content=state.draft))

    async def cancel(self) -> ViewerState:
        state = self.state
        if not isinstance(state, Editing):
            return state
        self._transition(discard_edit(state))
        return await self._open(Viewing(index=state.index, document=state.document))

    async def delete(self, confirm: ConfirmPrompt) -> ViewerState:
        state = self.state
        if not isinstance(state, Viewing):
            return state
        token = self._generation
        outcome = await self.operations.delete(
            state.document.id,
            state.document.name,
            state.document.storage_path,
            confirm=confirm,
        )
        if outcome and token == self._generation:
            return self._transition(CLOSED)
        return self.state

    # Helpers ---------------------------------------------------------------

    def _transition(self, state: ViewerState) -> ViewerState:
        if state is not self.state:
            self._generation += 1
            self.state = state
        return self.state

    async def _move(self, target: ViewerState) -> ViewerState:
        if target is self.state:
            return self.state
        if isinstance(target, Closed):
            logger.info("Open document index is out of range after a list change; closing viewer")
            return self._transition(target)
        return await self._open(target)

    def _unopenable(self) -> None:
        self.notifier(Notification(severity="error", message="Failed to load file, please try again."))

    async def _open(self, target: Viewing) -> ViewerState:
        """Load ``target``'s blob and switch to it unless something else happened meanwhile."""
        if not target.document.storage_path:
            self._unopenable()
            return self.state
        self._generation += 1
        token = self._generation
        content = await self.operations.load_content(target.document.storage_path)
        if token != self._generation:
            logger.debug("Dropping stale load of %s", target.document.storage_path)
            return self.state
        if content is None:
            logger.info("Load of %s failed; staying in %s", target.document.storage_path, type(self.state).__name__)
            return self.state
        self.state = replace(target, content=content)
        return self.state
