"""Allow `python -m consul_diag pprof|gather ...`."""

import sys

from .main import pprof_main, gather_main

COMMANDS = {
    'pprof': pprof_main,
    'gather': gather_main,
}

if __name__ == "__main__":
    if len(sys.argv) < 2 or sys.argv[1] not in COMMANDS:
        print(f"Usage: python -m consul_diag {{{'|'.join(COMMANDS)}}} [OPTIONS]")
        sys.exit(2)
    sys.exit(COMMANDS[sys.argv[1]](sys.argv[2:]))
