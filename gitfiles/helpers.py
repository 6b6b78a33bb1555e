"""
gitfiles.helpers - The external commands that know about repositories

    gitfilestat root treeish path      prints file, directory or nothing
    gitfileget root treeish path       prints the file
    gitfileget -d root treeish path    prints the directory listing

A listing is piped through a formatting filter (mc by default) run with
winid=<window id> in its environment, so it can size its columns to the
window it is writing to.

Commands run as asyncio subprocesses: a slow listing holds up only the
window that asked for it.
"""

import asyncio
import logging
import os
from typing import Awaitable, Callable, List, Optional, Sequence

from .config import Settings
from .names import Name

logger = logging.getLogger(__name__)

CHUNK = 8192

Sink = Callable[[bytes], Awaitable[None]]


class Helpers:
    """Runs the configured helper commands."""

    def __init__(self, settings: Settings):
        self.settings = settings

    async def stat(self, root: str, treeish: str, path: str) -> str:
        """
        Kind of object at root@treeish/path: "file", "directory" or "".

        Any failure to run the helper also gives "".
        """
        argv = [*self.settings.stat_command, root, treeish, path]
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
            )
            out, _ = await proc.communicate()
        except OSError as e:
            logger.warning("%s: %s", argv[0], e)
            return ""
        if proc.returncode:
            logger.info("%s exited with status %d", " ".join(argv), proc.returncode)
        lines = out.decode("utf-8", errors="replace").splitlines()
        return lines[0].strip() if lines else ""

    async def read_file(self, name: Name, sink: Sink):
        """Stream the file's content into sink."""
        argv = [*self.settings.get_command, name.root, name.treeish, name.path]
        await self._pipeline([argv], sink)

    async def read_directory(self, name: Name, sink: Sink, winid: int):
        """Stream the directory listing for window winid into sink."""
        argv = [*self.settings.get_command, "-d", name.root, name.treeish, name.path]
        commands = [argv]
        if self.settings.listing_filter:
            commands.append(list(self.settings.listing_filter))
        env = dict(os.environ, winid=str(winid))
        await self._pipeline(commands, sink, env)

    async def _pipeline(
        self,
        commands: Sequence[Sequence[str]],
        sink: Sink,
        env: Optional[dict] = None,
    ):
        """
        Run commands connected by pipes and copy the last one's output
        to sink. Failures are logged; whatever reached sink stays there.
        """
        logger.info("run %s", " | ".join(" ".join(argv) for argv in commands))
        procs: List[asyncio.subprocess.Process] = []
        upstream: Optional[int] = None
        try:
            for argv in commands[:-1]:
                r, w = os.pipe()
                try:
                    procs.append(await asyncio.create_subprocess_exec(
                        *argv,
                        stdin=asyncio.subprocess.DEVNULL if upstream is None else upstream,
                        stdout=w,
                        env=env,
                    ))
                except BaseException:
                    os.close(r)
                    raise
                finally:
                    os.close(w)
                    if upstream is not None:
                        os.close(upstream)
                    upstream = None
                upstream = r

            try:
                last = await asyncio.create_subprocess_exec(
                    *commands[-1],
                    stdin=asyncio.subprocess.DEVNULL if upstream is None else upstream,
                    stdout=asyncio.subprocess.PIPE,
                    env=env,
                )
            finally:
                if upstream is not None:
                    os.close(upstream)
                upstream = None
            procs.append(last)

            while True:
                chunk = await last.stdout.read(CHUNK)
                if not chunk:
                    break
                await sink(chunk)

            for argv, proc in zip(commands, procs):
                status = await proc.wait()
                if status:
                    logger.warning("%s exited with status %d", argv[0], status)
        except OSError as e:
            logger.warning("%s: %s", commands[0][0], e)
        finally:
            for proc in procs:
                if proc.returncode is None:
                    try:
                        proc.kill()
                    except ProcessLookupError:
                        pass
                    await proc.wait()
