"""
gitfiles - browse revisions of a repository in acme

Usage:
    gitfiles [-9] [-D]

Options:
    -9    trace the 9P conversation with acme and the plumber
    -D    start at debug level "minimal" instead of "off"

Windows are opened by plumbing root@treeish/path names to the
gitfileedit port, and by button-3 clicks in windows already open.
"""

import argparse
import asyncio
import logging
import signal
import sys

from dotenv import load_dotenv

from ninep import P9Error, Hangup

from . import debug
from .config import Settings
from .supervisor import Supervisor

USAGE = "usage: gitfiles [-9] [-D]"

logger = logging.getLogger("gitfiles")


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message):
        print(USAGE, file=sys.stderr)
        sys.exit(1)


def parse_args(argv=None) -> argparse.Namespace:
    parser = _ArgumentParser(prog="gitfiles", usage=USAGE, add_help=False)
    parser.add_argument("-9", dest="chatty9p", action="store_true")
    parser.add_argument("-D", dest="debug", action="store_true")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    load_dotenv()

    logging.basicConfig(
        level=logging.WARNING,
        format='%(asctime)s %(name)s %(levelname)s %(message)s',
        datefmt='%H:%M:%S'
    )
    debug.set_level(debug.DebugLevel.MINIMAL if args.debug else debug.DebugLevel.OFF)
    if args.chatty9p:
        logging.getLogger("ninep").setLevel(logging.DEBUG)

    try:
        settings = Settings.from_env()
    except ValueError as e:
        print(f"gitfiles: {e}", file=sys.stderr)
        sys.exit(1)

    logger.info("gitfiles starting")
    supervisor = Supervisor(settings)

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, supervisor.stop)

    try:
        loop.run_until_complete(supervisor.run())
    except (OSError, P9Error, Hangup) as e:
        logger.error("cannot attach to acme: %s", e)
        sys.exit(1)
    finally:
        loop.close()


if __name__ == '__main__':
    main()
