# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import logging
import os
import subprocess
import time
from dataclasses import dataclass, field
from typing import Optional, Sequence, Union

Cmd = Sequence[Union[str, "os.PathLike[str]"]]

log = logging.getLogger("tagenv")


@dataclass
class CommandRunner:
    """
    Runs local CLI tools (az, kubectl) with logging.

    stdin is never logged: it is how secret material reaches kubectl.
    """

    label: Optional[str] = None
    timeout: Optional[float] = 600.0
    env: dict[str, str] = field(default_factory=dict)

    def run(
        self,
        cmd: Cmd,
        *,
        stdin_text: Optional[str] = None,
        timeout: Optional[float] = None,
        cwd: str | None = None,
    ) -> subprocess.CompletedProcess:
        label = self.label or "cmd"
        argv = [str(c) for c in cmd]
        log.debug("[%s] $ %s", label, " ".join(argv))

        env = None
        if self.env:
            env = {**os.environ, **self.env}

        start = time.time()
        try:
            result = subprocess.run(
                argv,
                input=stdin_text,
                capture_output=True,
                check=False,
                text=True,
                cwd=cwd,
                env=env,
                timeout=timeout if timeout is not None else self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            log.warning("[%s] timed out after %ss", label, e.timeout)
            raise TimeoutError(f"{argv[0]} timed out after {e.timeout}s") from e

        duration = time.time() - start

        if result.stdout:
            log.debug("[%s][stdout]\n%s", label, result.stdout.rstrip())
        if result.stderr:
            log.debug("[%s][stderr]\n%s", label, result.stderr.rstrip())
        log.debug("[%s][exit %s] (%.2fs)", label, result.returncode, duration)

        return result
