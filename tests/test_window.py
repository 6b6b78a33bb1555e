import asyncio
import logging

import pytest

from ninep import Hangup
from gitfiles import debug
from gitfiles.registry import Window
from gitfiles.window import PLACEHOLDER, State, WindowController

from conftest import FakeWin, execute, look, settle


LISTING = "Makefile\nlib/\nmain.c\n"
SOURCE = "#include <u.h>\n#include <libc.h>\n\nvoid\nmain(void)\n{\n}\n"


@pytest.fixture
def repo(helpers):
    helpers.add_directory("/repo@v1/src", LISTING)
    helpers.add_file("/repo@v1/src/main.c", SOURCE)
    helpers.add_directory("/repo@v1/src/lib", "util.c\n")
    helpers.add_file("/repo@v1/src/lib/util.c", "int x;\nint y;\nint z;\n")
    return helpers


def controller_for(workspace, window):
    return WindowController(workspace, window)


class TestFirstLoad:
    @pytest.mark.asyncio
    async def test_file(self, workspace, repo):
        window, created = await workspace.open("/repo@v1/src/main.c")
        win = window.win

        assert created
        assert win.body == SOURCE
        assert win.name == "/repo@v1/src/main.c"
        assert win.tag == "Get Look "
        assert win.dot == (0, 0)
        assert not win.dirty
        assert workspace.registry.by_id(win.id) is window

    @pytest.mark.asyncio
    async def test_directory_gets_trailing_slash(self, workspace, repo):
        window, _ = await workspace.open("/repo@v1/src")
        win = window.win

        assert win.body == LISTING
        assert win.name == "/repo@v1/src/"
        assert window.name == "/repo@v1/src/"
        assert repo.listing_winids == [win.id]
        assert not win.dirty

    @pytest.mark.asyncio
    async def test_name_is_cleaned(self, workspace, repo):
        win = FakeWin(99)
        win.name = "/repo@v1/src/./lib/../main.c"
        controller = controller_for(workspace, Window(99, win.name, win))

        await controller.get()
        assert win.name == "/repo@v1/src/main.c"
        assert win.body == SOURCE

    @pytest.mark.asyncio
    async def test_initial_address_is_selected(self, workspace, repo):
        window, _ = await workspace.open("/repo@v1/src/lib/util.c", "2")
        win = window.win

        assert win.body[win.dot[0]:win.dot[1]] == "int y;\n"

    @pytest.mark.asyncio
    async def test_nothing_there_leaves_window_empty(self, workspace, repo):
        window, created = await workspace.open("/repo@v1/nope")
        win = window.win

        assert created
        assert win.body == ""
        assert win.name == "/repo@v1/nope"
        assert workspace.registry.by_id(win.id) is window

    @pytest.mark.asyncio
    async def test_bad_name_still_answers(self, workspace, repo, caplog):
        with caplog.at_level(logging.INFO, logger="gitfiles"):
            window, _ = await workspace.open("/repo/without/revision")

        [record] = [r for r in caplog.records if "bad name" in r.getMessage()]
        assert record.levelno == logging.INFO

        assert window.win.body == ""
        assert repo.stat_calls == []

    @pytest.mark.asyncio
    async def test_reply_is_sent_when_session_dies_early(self, workspace, acme, monkeypatch):
        class BrokenWin(FakeWin):
            async def write_tag(self, text):
                raise Hangup("acme gone")

        broken = BrokenWin(7)

        async def new_window():
            return broken

        monkeypatch.setattr(acme, "new_window", new_window)
        with pytest.raises(Hangup):
            await asyncio.wait_for(workspace.open("/repo@v1/src"), 1)
        await settle()

        assert broken.closed
        assert workspace.registry.by_id(7) is None

    @pytest.mark.asyncio
    async def test_bad_initial_address_is_ignored(self, workspace, repo):
        window, _ = await workspace.open("/repo@v1/src/main.c", "/no such/")

        assert window.win.body == SOURCE
        assert window.win.dot == (0, 0)


class TestCommands:
    @pytest.mark.asyncio
    async def test_get_reloads(self, workspace, repo):
        window, _ = await workspace.open("/repo@v1/src/main.c")
        win = window.win
        repo.add_file("/repo@v1/src/main.c", "changed\n")

        win.send(execute("Get"))
        await settle()

        assert win.body == "changed\n"
        assert PLACEHOLDER.decode() not in win.body
        assert not win.dirty

    @pytest.mark.asyncio
    async def test_del_ends_the_session(self, workspace, repo):
        window, _ = await workspace.open("/repo@v1/src/main.c")
        win = window.win

        win.send(execute("Del"))
        await settle()

        assert win.deleted and win.closed
        assert workspace.registry.by_id(win.id) is None

    @pytest.mark.asyncio
    async def test_del_refused_keeps_session(self, workspace, repo):
        window, _ = await workspace.open("/repo@v1/src/main.c")
        win = window.win
        win.dirty = True

        win.send(execute("Del"))
        await settle()
        assert not win.closed
        assert workspace.registry.by_id(win.id) is window

        win.send(execute("Delete"))
        await settle()
        assert win.closed

    @pytest.mark.asyncio
    async def test_debug_cycles(self, workspace, repo, capsys):
        window, _ = await workspace.open("/repo@v1/src/main.c")
        controller = controller_for(workspace, window)

        levels = []
        for _ in range(3):
            await controller.execute(execute("Debug"))
            levels.append(debug.get_level())

        assert levels == [debug.DebugLevel.MINIMAL, debug.DebugLevel.CHATTY, debug.DebugLevel.OFF]
        assert capsys.readouterr().out.splitlines() == [
            "Gitfiles debug minimal",
            "Gitfiles debug chatty",
            "Gitfiles debug off",
        ]

    @pytest.mark.asyncio
    async def test_other_commands_go_back_to_acme(self, workspace, repo):
        window, _ = await workspace.open("/repo@v1/src/main.c")
        event = execute("Snarf")

        await controller_for(workspace, window).handle(event)
        assert window.win.returned == [event]

    @pytest.mark.asyncio
    async def test_keyboard_events_are_ignored(self, workspace, repo):
        window, _ = await workspace.open("/repo@v1/src/main.c")
        event = execute("Get")
        event.c1 = "K"
        window.win.body = "edited"

        await controller_for(workspace, window).handle(event)
        assert window.win.body == "edited"
        assert window.win.returned == []


class TestStates:
    @pytest.mark.asyncio
    async def test_lifecycle(self, workspace, repo, acme):
        win = await acme.new_window()
        controller = controller_for(workspace, Window(win.id, "/repo@v1/src/main.c", win))
        assert controller.state is State.AWAITING_FIRST_LOAD

        task = workspace.spawn(controller.run(), "test")
        await settle()
        assert controller.state is State.IDLE

        win.send(None)
        await task
        assert controller.state is State.CLOSED


class TestLook:
    @pytest.mark.asyncio
    async def test_tag_click_uses_acme_expansion(self, workspace, repo):
        window, _ = await workspace.open("/repo@v1/src/")
        before = len(workspace.registry)

        await controller_for(workspace, window).look(look(0, 6, "main.c", c2="l"))

        assert len(workspace.registry) == before + 1
        assert workspace.registry.by_name("/repo@v1/src/main.c") is not None

    @pytest.mark.asyncio
    async def test_body_click_is_widened_to_blanks(self, workspace, repo):
        window, _ = await workspace.open("/repo@v1/src/")
        win = window.win
        win.body = "see lib/util.c:3 here\n"
        # acme expanded the click at 9 to "util.c", not the whole word
        event = look(8, 14, "util.c", oq=(9, 9))

        await controller_for(workspace, window).look(event)

        opened = workspace.registry.by_name("/repo@v1/src/lib/util.c")
        assert opened is not None
        assert opened.win.body[opened.win.dot[0]:opened.win.dot[1]] == "int z;\n"
        assert win.returned == []

    @pytest.mark.asyncio
    async def test_click_in_selection_uses_it(self, workspace, repo):
        window, _ = await workspace.open("/repo@v1/src/")
        win = window.win
        win.body = "lib/util.c main.c\n"
        win.dot = (0, 3)

        await controller_for(workspace, window).look(look(0, 3, "lib", oq=(1, 1)))

        assert workspace.registry.by_name("/repo@v1/src/lib/") is not None
        assert workspace.registry.by_name("/repo@v1/src/lib/util.c") is None

    @pytest.mark.asyncio
    async def test_sweep_is_used_exactly(self, workspace, repo):
        window, _ = await workspace.open("/repo@v1/src/")
        win = window.win
        win.body = "xmain.c\n"

        await controller_for(workspace, window).look(look(1, 7, "main.c"))

        assert workspace.registry.by_name("/repo@v1/src/main.c") is not None

    @pytest.mark.asyncio
    async def test_unresolved_click_goes_back_to_acme(self, workspace, repo):
        window, _ = await workspace.open("/repo@v1/src/")
        win = window.win
        win.body = "nonsense\n"
        event = look(0, 8, "nonsense")

        await controller_for(workspace, window).look(event)

        assert win.returned == [event]
        assert workspace.failures.last == "/repo@v1/src/nonsense"
