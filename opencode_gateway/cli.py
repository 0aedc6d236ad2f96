"""Command-line entry point of the gateway launcher."""

from __future__ import annotations

import sys
from collections.abc import Sequence

from .commands import run_doctor, run_init, run_serve, run_warm
from .options import load_options

_COMMANDS = {
    "init": run_init,
    "serve": run_serve,
    "doctor": run_doctor,
    "warm": run_warm,
}


def print_help() -> None:
    """Print the list of available commands."""
    print("opencode-gateway-launcher")
    print()
    print("Available commands:")
    print("  init    Prepare gateway config and managed OpenCode files")
    print("  warm    Warm the gateway plugin for the configured workspace")
    print("  serve   Start OpenCode with the local gateway plugin")
    print("  doctor  Check runtime prerequisites and generated paths")


def main(argv: Sequence[str] | None = None) -> int:
    """Run one launcher command and return the process exit code."""
    args = list(sys.argv[1:] if argv is None else argv)
    command = args[0] if args else None

    try:
        options = load_options()
        handler = _COMMANDS.get(command) if command is not None else None
        if handler is None:
            print_help()
        else:
            handler(options)
    except Exception as error:  # noqa: BLE001 - every failure is reported the same way
        print(f"error: {error}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())