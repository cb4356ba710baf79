"""Tests for tree module."""

import io
import re
import threading

import pytest

from treelog import tree as tree_module
from treelog.renderer import SPINNER_FRAMES, TaskStatus, render_tick
from treelog.tree import ActivityFlag, TaskTree

# A spinner repaint for one task (colour off)
TICK_RE = re.compile(r"\x1b\[s(?:\x1b\[\d+A)?\x1b\[\d+G[-\\|/]\x1b\[u")


def strip_ticks(text: str) -> str:
    return TICK_RE.sub("", text)


class BrokenFlushWriter(io.StringIO):
    """Writer whose flush always fails."""

    def flush(self) -> None:
        raise OSError("terminal went away")


@pytest.fixture
def writer() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def tree(writer: io.StringIO):
    """Tree with a fast animator that is always drained after the test."""
    t = TaskTree(writer=writer, interval=0.001, colour=False)
    yield t
    t.join(2.0)


@pytest.fixture(autouse=True)
def reset_default_tree():
    yield
    tree_module.set_tree(None)


def test_activity_flag_compare_and_set():
    """Test that only the first claim wins."""
    flag = ActivityFlag()

    assert flag.compare_and_set(False, True) is True
    assert flag.compare_and_set(False, True) is False
    assert bool(flag) is True

    flag.clear()
    assert bool(flag) is False


def test_nested_sequence_empties_stack_and_stops_animator(tree: TaskTree):
    """Test that properly nested start/end leaves nothing running."""
    tree.start("a")
    tree.start("b")
    tree.start("c")
    tree.pass_("c")
    tree.warn("b")
    tree.start("d")
    tree.fail("d")
    tree.pass_("a")

    assert tree.join(2.0)
    assert not tree.stack
    assert tree.is_animating is False


def test_build_compile_scenario(tree: TaskTree, writer: io.StringIO):
    """Test the full output of a nested build with one animator."""
    tree.start("build")
    tree.start("compile")
    tree.pass_("compile ok")
    tree.pass_("build ok")

    assert tree.join(2.0)
    assert not tree.stack
    assert tree.is_animating is False
    assert tree.spawn_count == 1

    expected = (
        "\n- build"
        "\n\x1b[s\x1b[u  ┗━ - compile"
        "\x1b[s\x1b[6G✔ \x1b[Kcompile ok"
        "\x1b[s\x1b[1A\x1b[1G✔ \x1b[Kbuild ok\x1b[u"
        "\n"
    )
    assert strip_ticks(writer.getvalue()) == expected


def test_animator_restarts_after_natural_shutdown(tree: TaskTree):
    """Test that a new task after an empty stack spawns a new animator."""
    tree.start("first")
    tree.pass_("first")
    assert tree.join(2.0)
    assert tree.spawn_count == 1

    tree.start("second")
    assert tree.spawn_count == 2
    tree.pass_("second")
    assert tree.join(2.0)
    assert tree.is_animating is False


def test_end_with_no_task_prints_plain_line(tree: TaskTree, writer: io.StringIO):
    """Test the fallback when no task is open."""
    tree.fail("no task")

    assert writer.getvalue() == "✘ no task\n"
    assert not tree.stack
    assert tree.is_animating is False
    assert tree.spawn_count == 0


def test_end_row_matches_later_pushes(tree: TaskTree, writer: io.StringIO):
    """Test that an end moves up by the number of tasks started after it."""
    tree.start("root")
    tree.start("child")
    tree.start("grandchild one")
    tree.pass_("grandchild one")
    tree.start("grandchild two")
    tree.pass_("grandchild two")

    writer.seek(0)
    writer.truncate()
    tree.pass_("child")

    # Two lines were printed below "child", which sits at depth 1
    assert strip_ticks(writer.getvalue()) == "\x1b[s\x1b[2A\x1b[6G✔ \x1b[Kchild\x1b[u"
    tree.pass_("root")


def test_second_child_extends_parent_line(tree: TaskTree, writer: io.StringIO):
    """Test connector glyphs for a child started after a sibling."""
    tree.start("root")
    tree.start("one")
    tree.pass_("one")

    writer.seek(0)
    writer.truncate()
    tree.start("two")

    out = strip_ticks(writer.getvalue())
    assert out == "\n\x1b[s\x1b[1A\x1b[3G┣\x1b[1D\x1b[1B┃\x1b[u  ┗━ - two"
    tree.pass_("two")
    tree.pass_("root")


def test_concurrent_starts_spawn_one_animator(tree: TaskTree):
    """Test that racing starts launch exactly one animator."""
    workers = 16
    barrier = threading.Barrier(workers)

    def worker() -> None:
        barrier.wait()
        tree.start("worker")

    threads = [threading.Thread(target=worker) for _ in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert tree.spawn_count == 1
    assert tree.is_animating is True
    assert tree.stack.offsets() == list(range(workers - 1, -1, -1))

    for _ in range(workers):
        tree.pass_("done")

    assert tree.join(2.0)
    assert tree.is_animating is False
    assert tree.spawn_count == 1


def test_animate_paints_same_frame_for_all_tasks(writer: io.StringIO):
    """Test the animator loop directly with an injected sleep."""
    sleeps = []
    t = TaskTree(writer=writer, interval=0.5, colour=False)

    t.stack.push()
    t.stack.push()
    t._active.compare_and_set(False, True)

    def sleep(seconds: float) -> None:
        sleeps.append(seconds)
        if len(sleeps) == 2:
            t.stack.pop()
            t.stack.pop()

    t._sleep = sleep
    t._animate()

    assert sleeps == [0.5, 0.5]
    assert writer.getvalue() == render_tick([1, 0], SPINNER_FRAMES[0], False) + render_tick(
        [1, 0], SPINNER_FRAMES[1], False
    )
    assert t.is_animating is False


def test_flush_failure_is_ignored():
    """Test that a failing flush never reaches the caller."""
    t = TaskTree(writer=BrokenFlushWriter(), interval=0.001, colour=False)

    t.start("task")
    t.pass_("done")
    t.fail("no task")

    assert t.join(2.0)


def test_end_dispatches_status(tree: TaskTree, writer: io.StringIO):
    """Test that end() uses the glyph of the given status."""
    tree.end(TaskStatus.WARNED, "careful")

    assert writer.getvalue() == "▲ careful\n"


def test_task_context_passes_by_default(tree: TaskTree, writer: io.StringIO):
    """Test that a clean exit passes with the original message."""
    with tree.task("fetch"):
        pass

    assert strip_ticks(writer.getvalue()) == "\n- fetch\x1b[s\x1b[1G✔ \x1b[Kfetch\n"


def test_task_context_chosen_outcome(tree: TaskTree, writer: io.StringIO):
    """Test that the body can pick the outcome."""
    with tree.task("fetch") as task:
        task.warn("fetch: stale")

    assert "▲ \x1b[Kfetch: stale" in writer.getvalue()


def test_task_context_fails_on_exception(tree: TaskTree, writer: io.StringIO):
    """Test that an exception fails the task and propagates."""
    with pytest.raises(RuntimeError):
        with tree.task("fetch"):
            raise RuntimeError("boom")

    assert "✘ \x1b[Kboom" in writer.getvalue()
    assert not tree.stack


def test_from_config(writer: io.StringIO):
    """Test building a tree from a configuration dictionary."""
    t = TaskTree.from_config({"interval": 0.25, "colour": False, "log_level": "WARNING"}, writer=writer)

    assert t.interval == 0.25
    assert t.colour is False
    assert t.writer is writer


def test_default_writer_is_current_stdout(capsys: pytest.CaptureFixture[str]):
    """Test that a tree without a writer prints to sys.stdout."""
    t = TaskTree(colour=False)
    t.pass_("hello")

    assert capsys.readouterr().out == "✔ hello\n"


def test_get_tree_is_singleton():
    """Test that the process-wide tree is created once."""
    assert tree_module.get_tree() is tree_module.get_tree()


def test_module_shortcuts_use_default_tree(tree: TaskTree, writer: io.StringIO):
    """Test that module-level functions delegate to the current tree."""
    tree_module.set_tree(tree)

    tree_module.start("step")
    tree_module.warn("step warned")
    tree_module.fail("nothing open")
    with tree_module.task("ctx"):
        pass
    tree_module.start("last")
    tree_module.pass_("last")

    out = strip_ticks(writer.getvalue())
    assert "▲ \x1b[Kstep warned" in out
    assert "✘ nothing open\n" in out
    assert "✔ \x1b[Kctx" in out
    assert "✔ \x1b[Klast" in out


class TickFailingWriter(io.StringIO):
    """Writer that fails on spinner repaints."""

    def write(self, text: str) -> int:
        if TICK_RE.search(text):
            raise OSError("terminal went away")
        return super().write(text)


def test_animator_write_failure_releases_flag():
    """Test that a dying animator loop clears the activity flag."""
    t = TaskTree(writer=TickFailingWriter(), interval=0.001, colour=False)
    t.stack.push()
    t._active.compare_and_set(False, True)

    with pytest.raises(OSError):
        t._animate()

    assert t.is_animating is False

    # The next start can claim the flag and spawn a new loop
    t.stack.pop()
    t._writer = io.StringIO()
    t.start("again")
    assert t.spawn_count == 1
    t.pass_("again")
    assert t.join(2.0)
