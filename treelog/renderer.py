"""Escape-sequence rendering for the task tree.

Every function here is pure: it takes the stack geometry for one event
(start, end, tick) and returns the exact text to write. Positions are
relative to the cursor, which always sits on the last printed row.
"""

from enum import Enum

from rich.color import ColorSystem
from rich.style import Style

CSI = "\x1b["
SAVE_CURSOR = f"{CSI}s"
RESTORE_CURSOR = f"{CSI}u"
ERASE_TO_EOL = f"{CSI}K"

# Columns reserved per nesting level
INDENT = 5

# Clockwise rotation shared by every open task
SPINNER_FRAMES = ("-", "\\", "|", "/")

ATTENTION_COLOR = "yellow"

BRANCH = "┣"
VERTICAL = "┃"
LEAF = "┗━ "


class TaskStatus(Enum):
    """Final task outcomes."""

    PASSED = "passed"
    WARNED = "warned"
    FAILED = "failed"


# Status glyphs and colors
STATUS_DISPLAY = {
    TaskStatus.PASSED: ("✔", "green"),
    TaskStatus.WARNED: ("▲", "yellow"),
    TaskStatus.FAILED: ("✘", "red"),
}


def cursor_up(rows: int) -> str:
    return f"{CSI}{rows}A"


def cursor_to_column(column: int) -> str:
    return f"{CSI}{column}G"


def indent_column(depth: int) -> int:
    """Get the 1-based column of the status marker for a nesting depth."""
    return depth * INDENT + 1


def stylize(text: str, color: str, colour: bool = True) -> str:
    """Wrap text in bold SGR codes for a named color.

    Args:
        text: Text to style
        color: Standard color name (green, yellow, red, ...)
        colour: When False the text is returned unstyled

    Returns:
        Styled text
    """
    if not colour:
        return text
    return Style(color=color, bold=True).render(text, color_system=ColorSystem.STANDARD)


def status_glyph(status: TaskStatus, colour: bool = True) -> str:
    """Get the (optionally colored) glyph for a final status."""
    glyph, color = STATUS_DISPLAY[status]
    return stylize(glyph, color, colour)


def render_start(depth: int, parent_row: int | None, message: str, colour: bool = True) -> str:
    """Render the line for a task that was just pushed.

    Args:
        depth: Depth of the new task (0 for a root task)
        parent_row: Row offset of the parent after the push, None for a root task
        message: Task message
        colour: Style the neutral marker

    Returns:
        Text to write, starting with the newline that makes room for the task
    """
    parts = ["\n"]

    if parent_row is not None:
        # Extend the parent's vertical line down to the new row
        parts.append(SAVE_CURSOR)
        if parent_row > 1:
            parts.append(cursor_up(parent_row - 1) + cursor_to_column((depth - 1) * INDENT + 3) + BRANCH)
        for _ in range(1, parent_row):
            parts.append(f"{CSI}1D{CSI}1B{VERTICAL}")
        parts.append(RESTORE_CURSOR)

    if depth > 0:
        parts.append(" " * ((depth - 1) * INDENT + 2) + LEAF)

    parts.append(f"{stylize('-', ATTENTION_COLOR, colour)} {message}")
    return "".join(parts)


def render_end(row: int, depth: int, glyph: str, message: str) -> str:
    """Render the replacement of a task's spinner and message.

    Args:
        row: Row offset of the popped task
        depth: Number of tasks still open after the pop
        glyph: Status glyph (already styled)
        message: Final message

    Returns:
        Text to write
    """
    parts = [SAVE_CURSOR]

    if row > 0:
        parts.append(cursor_up(row))

    parts.append(f"{cursor_to_column(indent_column(depth))}{glyph} {ERASE_TO_EOL}{message}")

    # The bottom row keeps the cursor at the end of the message
    if row != 0:
        parts.append(RESTORE_CURSOR)

    return "".join(parts)


def render_end_untracked(glyph: str, message: str) -> str:
    """Render an end event with no open task as a plain line."""
    return f"{glyph} {message}\n"


def render_close() -> str:
    """Render the blank line that closes a finished tree."""
    return "\n"


def render_tick(offsets: list[int], frame: str, colour: bool = True) -> str:
    """Render one animation frame for every open task.

    Args:
        offsets: Row offsets, root first
        frame: Spinner glyph for this tick
        colour: Style the spinner

    Returns:
        Text to write (empty when no task is open)
    """
    spinner = stylize(frame, ATTENTION_COLOR, colour)
    parts = []
    column = 1

    for row in offsets:
        parts.append(SAVE_CURSOR)
        if row > 0:
            parts.append(cursor_up(row))
        parts.append(f"{cursor_to_column(column)}{spinner}{RESTORE_CURSOR}")
        column += INDENT

    return "".join(parts)


def next_frame(index: int) -> int:
    """Advance a spinner frame index."""
    return (index + 1) % len(SPINNER_FRAMES)
