from __future__ import annotations

import subprocess
from pathlib import Path

STDERR_EXCERPT_CHARS = 1200


class CommandError(Exception):
    def __init__(self, cmd: str, exit_code: int | None, stderr: str = "") -> None:
        self.cmd = cmd
        self.exit_code = exit_code
        self.stderr = (stderr or "")[:STDERR_EXCERPT_CHARS]
        if exit_code is None:
            msg = f"{cmd} failed to start: {self.stderr}"
        else:
            msg = f"{cmd} failed ({exit_code}): {self.stderr}"
        super().__init__(msg)


def run_command(cmd: str, args: list[str], *, cwd: str | Path | None = None) -> None:
    """
    Run `cmd args...` to completion with stdin closed.
    stdout is discarded; stderr is kept for the error message only.
    Raises CommandError on a non-zero exit or when the binary cannot be spawned.
    """
    try:
        p = subprocess.run(
            [cmd, *args],
            cwd=str(cwd) if cwd else None,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.PIPE,
        )
    except OSError as e:
        # binary not found, not executable, bad cwd
        raise CommandError(cmd, None, str(e)) from e

    if p.returncode != 0:
        stderr = (p.stderr or b"").decode("utf-8", errors="replace")
        raise CommandError(cmd, p.returncode, stderr)
