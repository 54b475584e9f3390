"""Coloured console logging with simple timers and counters."""

from __future__ import annotations

import time
from datetime import datetime, timezone

from termcolor import colored


class FatalError(RuntimeError):
    """Raised by :func:`error_panic` after logging."""


def _prefix() -> str:
    stamp = datetime.now(timezone.utc).isoformat()
    return colored("[", "cyan") + colored(stamp, "cyan") + colored("]", "cyan")


def warn(msg: str) -> None:
    print(_prefix() + colored(" WARN: ", "yellow") + colored(msg, "yellow"))


def error(msg: str) -> None:
    print(_prefix() + colored(" ERR: ", "red") + colored(msg, "red"))


def error_panic(msg: str) -> None:
    print(_prefix() + colored(" ERR PANIC: ", "red") + colored(msg, "red"))
    raise FatalError(msg)


def info(msg: str) -> None:
    print(_prefix() + colored(" INFO: ", "cyan") + colored(msg, "cyan"))


def success(msg: str) -> None:
    print(_prefix() + colored(" INFO: ", "green") + colored(msg, "green"))


class Logger:
    """Accumulates named timers (ms) and counters until consumed."""

    def __init__(self):
        self.timer_results: dict[str, int] = {}
        self.current_timers: dict[str, float] = {}
        self.counters: dict[str, int] = {}

    def start_timer(self, key: str) -> None:
        self.current_timers[key] = time.monotonic()

    def stop_timer(self, key: str) -> None:
        started = self.current_timers.pop(key, None)
        if started is None:
            return
        elapsed = int((time.monotonic() - started) * 1000)
        self.timer_results[key] = self.timer_results.get(key, 0) + elapsed

    def increment_counter(self, key: str, amount: int) -> None:
        self.counters[key] = self.counters.get(key, 0) + amount

    def consume(self) -> tuple[dict[str, int], dict[str, int]]:
        """Print and clear the accumulated timers and counters; return them."""
        timers, counters = self.timer_results, self.counters
        self.timer_results, self.counters = {}, {}
        dim = colored("(this run)", attrs=["dark"])
        print(colored("Consumed Timers:", "blue", attrs=["bold"]))
        for key, total in timers.items():
            label = colored(f"- {key:<20}", "cyan")
            print(f"{label} {colored(str(total), attrs=['bold'])}ms {dim}")
        print(colored("Consumed Counters:", "yellow", attrs=["bold"]))
        for key, total in counters.items():
            label = colored(f"- {key:<20}", "yellow")
            print(f"{label} {colored(str(total), attrs=['bold'])} {dim}")
        return timers, counters