from __future__ import annotations

import sys

from .config import load_config
from .logging_config import configure_logging
from .service import RelayService


def main() -> None:
    """Run the relay daemon.

    Takes no command line flags. Configuration comes from an optional TOML
    file ($LOBBYD_CONFIG, or lobbyd.toml under $LOBBYD_HOME) and from the
    LOBBYD_HOST, LOBBYD_PORT/PORT, LOBBYD_LOG_LEVEL and LOBBYD_LOG_FILE
    environment variables.
    """
    try:
        cfg = load_config()
    except (OSError, ValueError) as e:
        print(f"lobbyd: invalid configuration: {e}", file=sys.stderr)
        raise SystemExit(2) from e

    configure_logging(cfg)

    svc = RelayService(cfg)
    svc.run_forever()


if __name__ == "__main__":
    main()
