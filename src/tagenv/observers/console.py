# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/tagenv/observers/console.py
import typer

from .events import BaseEvent

_BASE = ("ts", "run_id", "environment", "action")


class ConsoleObserver:
    def notify(self, event: BaseEvent) -> None:
        d = event.dict()
        k = event.__class__.__name__
        typer.echo(f"[{d['ts']}] {k} env={d['environment']} action={d['action']} data={{"
                   + ", ".join(f"{x}={y}" for x, y in d.items() if x not in _BASE) + "}")
