"""Nested live progress trees for ANSI terminals."""

from treelog.renderer import TaskStatus
from treelog.stack import EmptyStackError, Task, TaskStack
from treelog.tree import TaskContext, TaskTree, fail, get_tree, pass_, set_tree, start, task, warn

__all__ = [
    "EmptyStackError",
    "Task",
    "TaskContext",
    "TaskStack",
    "TaskStatus",
    "TaskTree",
    "fail",
    "get_tree",
    "pass_",
    "set_tree",
    "start",
    "task",
    "warn",
]
