import sys
import logging

import setproctitle

from mcwrapper.log import setup_logging
from mcwrapper.local.supervisor import Supervisor

log = logging.getLogger("mcwrapper")


def main() -> None:
    """The main entry point: supervise the proxy and the server until the server stops."""
    setproctitle.setproctitle("MCWrapper - Supervisor")

    args = sys.argv[1:]
    level = logging.DEBUG if "--verbose" in args else logging.INFO
    setup_logging(level)
    if level == logging.DEBUG:
        log.debug("Verbose logging enabled.")

    sys.exit(Supervisor().run())


if __name__ == "__main__":
    main()
