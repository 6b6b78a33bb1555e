import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from ninep import P9Client
from gitfiles.config import Settings
from gitfiles.supervisor import Supervisor

from conftest import settle


def plumber_with_port():
    plumber = AsyncMock(spec=P9Client)
    plumber.open.return_value = object()
    plumber.read.return_value = b""
    return plumber


@pytest.mark.asyncio
async def test_runs_until_stopped():
    acme = AsyncMock()
    plumber = plumber_with_port()
    supervisor = Supervisor(Settings(namespace="/tmp/ns.test"))

    with patch("gitfiles.supervisor.Acme.mount", AsyncMock(return_value=acme)) as mount, \
            patch("gitfiles.supervisor.P9Client.dial", AsyncMock(return_value=plumber)) as dial:
        task = asyncio.ensure_future(supervisor.run())
        await settle()
        assert not task.done()
        supervisor.stop()
        await task

    mount.assert_awaited_once_with("unix!/tmp/ns.test/acme")
    dial.assert_awaited_once_with("unix!/tmp/ns.test/plumb")
    plumber.open.assert_awaited_once()
    assert plumber.open.await_args.args[0] == "gitfileedit"
    plumber.disconnect.assert_awaited_once()
    acme.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_no_plumber_keeps_running(caplog):
    acme = AsyncMock()
    supervisor = Supervisor(Settings(namespace="/tmp/ns.test"))

    with patch("gitfiles.supervisor.Acme.mount", AsyncMock(return_value=acme)), \
            patch("gitfiles.supervisor.P9Client.dial",
                  AsyncMock(side_effect=ConnectionRefusedError("refused"))):
        task = asyncio.ensure_future(supervisor.run())
        await settle()
        assert not task.done()
        assert supervisor.workspace is not None
        supervisor.stop()
        await task

    assert "cannot dial plumber" in caplog.text
    acme.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_no_acme_is_fatal():
    supervisor = Supervisor(Settings(namespace="/tmp/ns.test"))

    with patch("gitfiles.supervisor.Acme.mount",
               AsyncMock(side_effect=FileNotFoundError("no acme"))):
        with pytest.raises(FileNotFoundError):
            await supervisor.run()
