"""Task stack tracking open tasks and their distance from the bottom row.

Every task records how many rows have been printed below its own line since
it was drawn. Starting a task prints exactly one newline, so pushing bumps
every existing offset by one.
"""

import threading
from dataclasses import dataclass


class EmptyStackError(IndexError):
    """Raised when popping a stack with no open tasks."""


@dataclass
class Task:
    """A single open task."""

    row_offset: int = 0


class TaskStack:
    """LIFO of open tasks guarded by a re-entrant lock.

    Usage:
        stack = TaskStack()
        with stack.lock:
            task = stack.push()
            # ... render while holding the lock ...
    """

    def __init__(self) -> None:
        self.lock = threading.RLock()
        self._tasks: list[Task] = []

    def __len__(self) -> int:
        with self.lock:
            return len(self._tasks)

    def __bool__(self) -> bool:
        return len(self) > 0

    @property
    def depth(self) -> int:
        """Depth of the most recent task (-1 when empty)."""
        return len(self) - 1

    def last(self) -> Task | None:
        """Return the most recent task without removing it."""
        with self.lock:
            return self._tasks[-1] if self._tasks else None

    def push(self) -> Task:
        """Open a new task on the bottom row.

        Returns:
            The new task (row offset 0)
        """
        with self.lock:
            for task in self._tasks:
                task.row_offset += 1

            task = Task(row_offset=0)
            self._tasks.append(task)
            return task

    def pop(self) -> Task:
        """Remove and return the most recent task.

        Raises:
            EmptyStackError: If no task is open
        """
        with self.lock:
            if not self._tasks:
                raise EmptyStackError("no open task")
            return self._tasks.pop()

    def offsets(self) -> list[int]:
        """Snapshot of row offsets, root first."""
        with self.lock:
            return [task.row_offset for task in self._tasks]
