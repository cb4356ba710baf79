"""Task lifecycle and spinner animation.

A TaskTree owns the task stack, the animator activity flag and the output
stream. start/end run synchronously on the caller's thread while holding the
stack lock; the animator runs on its own daemon thread, takes the same lock
once per tick and exits as soon as it sees an empty stack.
"""

import logging
import sys
import threading
import time
from types import TracebackType
from typing import Any, Callable, Literal, Optional, TextIO, Type

from treelog.renderer import (
    SPINNER_FRAMES,
    TaskStatus,
    next_frame,
    render_close,
    render_end,
    render_end_untracked,
    render_start,
    render_tick,
    status_glyph,
)
from treelog.stack import EmptyStackError, TaskStack

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 0.1


class ActivityFlag:
    """Boolean with an atomic compare-and-set."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._value = False

    def __bool__(self) -> bool:
        with self._lock:
            return self._value

    def compare_and_set(self, expected: bool, new: bool) -> bool:
        """Set the flag to new if it currently equals expected.

        Returns:
            True if this call changed the flag
        """
        with self._lock:
            if self._value != expected:
                return False
            self._value = new
            return True

    def clear(self) -> None:
        with self._lock:
            self._value = False


class TaskTree:
    """Renders nested tasks as a live tree on an ANSI terminal.

    Usage:
        tree = TaskTree()
        tree.start("Building")
        tree.start("Compiling")
        tree.pass_("Compiled")
        tree.pass_("Built")
    """

    def __init__(
        self,
        writer: Optional[TextIO] = None,
        interval: float = DEFAULT_INTERVAL,
        colour: bool = True,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize the tree.

        Args:
            writer: Output stream (defaults to the current sys.stdout)
            interval: Seconds between spinner frames
            colour: Style glyphs with SGR color codes
            sleep: Sleep function used by the animator
        """
        self._writer = writer
        self.interval = interval
        self.colour = colour
        self._sleep = sleep
        self._stack = TaskStack()
        self._active = ActivityFlag()
        self._animator: Optional[threading.Thread] = None
        self.spawn_count = 0

    @classmethod
    def from_config(cls, cfg: dict[str, Any], writer: Optional[TextIO] = None) -> "TaskTree":
        """Build a tree from a configuration dictionary (see treelog.config)."""
        return cls(writer=writer, interval=float(cfg["interval"]), colour=bool(cfg["colour"]))

    @property
    def stack(self) -> TaskStack:
        return self._stack

    @property
    def is_animating(self) -> bool:
        """Whether an animator loop is currently running."""
        return bool(self._active)

    @property
    def writer(self) -> TextIO:
        return self._writer if self._writer is not None else sys.stdout

    def _write(self, text: str) -> None:
        self.writer.write(text)

    def _flush(self) -> None:
        try:
            self.writer.flush()
        except Exception:
            pass  # Rendering is cosmetic, never fail the caller

    def start(self, message: str) -> None:
        """Open a new task below the current one.

        Args:
            message: Task message shown after the spinner
        """
        with self._stack.lock:
            parent = self._stack.last()
            self._stack.push()

            parent_row = parent.row_offset if parent is not None else None
            self._write(render_start(self._stack.depth, parent_row, message, self.colour))
            self._flush()

            if self._active.compare_and_set(False, True):
                self._spawn_animator()

    def end(self, status: TaskStatus, message: str) -> None:
        """Resolve the most recent open task.

        With no open task the glyph and message are printed as a plain line.

        Args:
            status: Final outcome
            message: Message replacing the task's original message
        """
        glyph = status_glyph(status, self.colour)

        with self._stack.lock:
            try:
                task = self._stack.pop()
            except EmptyStackError:
                logger.debug("Ending %s task with no open task", status.value)
                self._write(render_end_untracked(glyph, message))
            else:
                self._write(render_end(task.row_offset, len(self._stack), glyph, message))
                if not self._stack:
                    self._write(render_close())

            self._flush()

    def pass_(self, message: str) -> None:
        """Mark the most recent task as passed (green check)."""
        self.end(TaskStatus.PASSED, message)

    def warn(self, message: str) -> None:
        """Mark the most recent task as passed with a warning (yellow triangle)."""
        self.end(TaskStatus.WARNED, message)

    def fail(self, message: str) -> None:
        """Mark the most recent task as failed (red cross)."""
        self.end(TaskStatus.FAILED, message)

    def task(self, message: str) -> "TaskContext":
        """Get a context manager that starts a task and ends it on exit."""
        return TaskContext(self, message)

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the current animator thread to stop.

        Args:
            timeout: Maximum seconds to wait

        Returns:
            True if no animator is running afterwards
        """
        thread = self._animator
        if thread is not None:
            thread.join(timeout)
            return not thread.is_alive()
        return True

    def _spawn_animator(self) -> None:
        self.spawn_count += 1
        thread = threading.Thread(target=self._animate, name="treelog-animator", daemon=True)
        self._animator = thread
        logger.debug("Starting animator #%d", self.spawn_count)
        thread.start()

    def _animate(self) -> None:
        frame = 0

        try:
            while True:
                with self._stack.lock:
                    offsets = self._stack.offsets()

                    # Cleared under the lock so a concurrent start sees a stopped animator
                    if not offsets:
                        self._active.clear()
                        break

                    self._write(render_tick(offsets, SPINNER_FRAMES[frame], self.colour))
                    self._flush()

                frame = next_frame(frame)
                self._sleep(self.interval)
        except BaseException:
            # A failed write must not leave the flag claimed by a dead loop
            self._active.clear()
            raise

        logger.debug("Animator stopped")


class TaskContext:
    """Context manager for a single task.

    Usage:
        with tree.task("Fetching sources") as task:
            if stale:
                task.warn("Sources are stale")
        # Passed unless the body chose another outcome or raised
    """

    def __init__(self, tree: TaskTree, message: str):
        self.tree = tree
        self.message = message
        self._outcome: Optional[tuple[TaskStatus, str]] = None

    def __enter__(self) -> "TaskContext":
        self.tree.start(self.message)
        return self

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> Literal[False]:
        """End the task, failing it if the body raised."""
        if exc_type is not None:
            self.tree.fail(str(exc_val) or exc_type.__name__)
        elif self._outcome is not None:
            self.tree.end(*self._outcome)
        else:
            self.tree.pass_(self.message)
        return False

    def pass_(self, message: str) -> None:
        self._outcome = (TaskStatus.PASSED, message)

    def warn(self, message: str) -> None:
        self._outcome = (TaskStatus.WARNED, message)

    def fail(self, message: str) -> None:
        self._outcome = (TaskStatus.FAILED, message)


# Process-wide tree used by the module-level shortcuts
_default_tree: Optional[TaskTree] = None
_default_lock = threading.Lock()


def get_tree() -> TaskTree:
    """Get the process-wide tree, creating it on first use."""
    global _default_tree
    with _default_lock:
        if _default_tree is None:
            _default_tree = TaskTree()
        return _default_tree


def set_tree(tree: Optional[TaskTree]) -> None:
    """Replace the process-wide tree (None resets to a fresh default)."""
    global _default_tree
    with _default_lock:
        _default_tree = tree


def start(message: str) -> None:
    get_tree().start(message)


def pass_(message: str) -> None:
    get_tree().pass_(message)


def warn(message: str) -> None:
    get_tree().warn(message)


def fail(message: str) -> None:
    get_tree().fail(message)


def task(message: str) -> TaskContext:
    return get_tree().task(message)
