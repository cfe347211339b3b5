"""``python -m fridamgr`` runs the same CLI as the ``frida-mgr`` script."""

from __future__ import annotations

import sys


def main() -> int:
    # Deferred so importing the package does not pull in click and rich.
    from fridamgr.cli import main as cli_main

    return cli_main()


if __name__ == "__main__":
    sys.exit(main())
