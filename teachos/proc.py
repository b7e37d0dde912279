"""Process table: creation, exit, waiting, sleeping and a priority-share scheduler.

The scheduler gives each runnable process a share of a ten-slot round in
proportion to its priority. Fractions of a share left over are carried to the
next round so that small priorities still get their due over time.
"""

from __future__ import annotations

import enum
import errno
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TextIO

from .layout import Panic

NPROC = 64  # maximum number of processes
_NAME_LEN = 16  # room for a process name, terminator included

_PS_HEADER = (
    "name \t pid \t state \t priority \t expected execution time/10s "
    "\t started \t runcyles\n"
)


class ProcState(enum.IntEnum):
    """Life-cycle states of a process slot."""

    UNUSED = 0
    EMBRYO = 1
    SLEEPING = 2
    RUNNABLE = 3
    RUNNING = 4
    ZOMBIE = 5


_STATE_NAMES = {
    ProcState.UNUSED: "unused",
    ProcState.EMBRYO: "embryo",
    ProcState.SLEEPING: "sleep ",
    ProcState.RUNNABLE: "runnable",
    ProcState.RUNNING: "running",
    ProcState.ZOMBIE: "zombie",
}


@dataclass(eq=False)
class Proc:
    """One slot of the process table."""

    pid: int = 0
    state: ProcState = ProcState.UNUSED
    name: str = ""
    sz: int = 0
    priority: int = 0
    exp_execution_time: float = 0.0
    start_time: int = 0
    runcount: int = 0  # runs in the current share
    runcount_t: int = 0  # scheduler visits in total
    left_shares: float = 0.0  # fraction of a share carried over
    parent: Proc | None = None
    chan: Any = None  # what the process sleeps on, if sleeping
    killed: bool = False
    systime: int = 0


def _short_name(name: str) -> str:
    return name[: _NAME_LEN - 1]


class ProcessTable:
    """All processes of the system and the scheduler that runs them.

    ``runner`` is called with each process the scheduler picks; a process
    still running when it returns gives up the processor and stays runnable.
    Messages the kernel prints go to ``console`` when one is given.
    """

    def __init__(
        self,
        nproc: int = NPROC,
        runner: Callable[[Proc], None] | None = None,
        console: TextIO | None = None,
    ) -> None:
        self.procs = [Proc() for _ in range(nproc)]
        self.runner = runner
        self.console = console
        self.nextpid = 1
        self.ticks = 0
        self.initproc: Proc | None = None

    def _print(self, text: str) -> None:
        if self.console is not None:
            self.console.write(text)

    def _wakeup1(self, chan: Any) -> None:
        for p in self.procs:
            if p.state is ProcState.SLEEPING and p.chan == chan:
                p.state = ProcState.RUNNABLE
                p.chan = None

    def priority_sum(self) -> int:
        """Sum of the priorities of runnable and running processes, ps excluded."""
        return sum(
            p.priority
            for p in self.procs
            if p.state in (ProcState.RUNNING, ProcState.RUNNABLE)
            and not p.name.startswith("ps")
        )

    def reset_execution_time(self) -> None:
        """Recompute every process's expected share of a ten-unit round."""
        total = self.priority_sum()
        for p in self.procs:
            p.exp_execution_time = 0.0 if total == 0 else p.priority / total * 10.0

    def allocproc(self, name: str = "") -> Proc:
        """Claim an unused slot; the first process claimed becomes init."""
        p = next((p for p in self.procs if p.state is ProcState.UNUSED), None)
        if p is None:
            raise OSError(errno.EAGAIN, "process table full")
        p.state = ProcState.EMBRYO
        p.pid = self.nextpid
        self.nextpid += 1
        p.name = _short_name(name)
        p.priority = 1
        p.start_time = self.ticks
        p.runcount_t = 0
        p.runcount = 0
        p.left_shares = 0.0
        p.killed = False
        p.chan = None
        p.parent = None
        self.reset_execution_time()
        if self.initproc is None:
            self.initproc = p
        return p

    def fork(self, parent: Proc) -> int:
        """Create a runnable copy of parent; return the child's pid."""
        child = self.allocproc(parent.name)
        child.sz = parent.sz
        child.parent = parent
        child.state = ProcState.RUNNABLE
        return child.pid

    def exit(self, proc: Proc) -> None:
        """Turn proc into a zombie and hand its children to init."""
        if proc is self.initproc:
            raise Panic("init exiting")
        if proc.parent is not None:
            self._wakeup1(proc.parent)
        for p in self.procs:
            if p.parent is proc:
                p.parent = self.initproc
                if p.state is ProcState.ZOMBIE and self.initproc is not None:
                    self._wakeup1(self.initproc)
        proc.state = ProcState.ZOMBIE
        proc.priority = 0
        proc.exp_execution_time = 0.0
        proc.runcount = 0
        proc.runcount_t = 0
        self.reset_execution_time()

    def wait(self, parent: Proc) -> int | None:
        """Reap an exited child and return its pid.

        With children that are still alive, parent is put to sleep until one
        exits and None is returned; call again once it is runnable.
        """
        havekids = False
        for p in self.procs:
            if p.parent is not parent:
                continue
            havekids = True
            if p.state is ProcState.ZOMBIE:
                pid = p.pid
                p.pid = 0
                p.parent = None
                p.name = ""
                p.killed = False
                p.state = ProcState.UNUSED
                p.systime = 0
                return pid
        if not havekids:
            raise ChildProcessError(errno.ECHILD, "no children")
        if parent.killed:
            raise InterruptedError(errno.EINTR, "killed while waiting")
        self.sleep(parent, parent)
        return None

    def kill(self, pid: int) -> None:
        """Mark the process with pid as killed, waking it if asleep."""
        for p in self.procs:
            if p.pid == pid:
                p.killed = True
                if p.state is ProcState.SLEEPING:
                    p.state = ProcState.RUNNABLE
                    p.chan = None
                return
        raise ProcessLookupError(errno.ESRCH, f"no process {pid}")

    def setprio(self, pid: int, priority: int) -> int:
        """Set the priority of the process with pid; return pid."""
        for p in self.procs:
            if p.pid == pid:
                self._print("Priority successfully changed\n")
                p.priority = priority
                break
        return pid

    def schedule_round(self) -> list[int]:
        """Run one pass over the table; return the pids run, in order."""
        total = float(self.priority_sum()) or 1.0
        ran: list[int] = []
        for p in self.procs:
            while p.state is ProcState.RUNNABLE:
                real = p.priority * 10.0 / total + p.left_shares
                shares = 1 if 0.0 < real < 1.0 else int(real)
                p.runcount_t += 1
                if p.runcount >= shares:
                    p.runcount = 0
                    p.left_shares = real - shares
                    break
                p.runcount += 1
                p.state = ProcState.RUNNING
                ran.append(p.pid)
                if self.runner is not None:
                    self.runner(p)
                if p.state is ProcState.RUNNING:
                    p.state = ProcState.RUNNABLE
        return ran

    def sleep(self, proc: Proc | None, chan: Any) -> None:
        """Put proc to sleep on chan."""
        if proc is None:
            raise Panic("sleep")
        proc.chan = chan
        proc.state = ProcState.SLEEPING

    def wakeup(self, chan: Any) -> None:
        """Make every process sleeping on chan runnable."""
        self._wakeup1(chan)

    def ps(self, ticks: int) -> str:
        """Process listing with priorities and expected execution times."""
        total = self.priority_sum()
        out = [_PS_HEADER]
        for p in self.procs:
            active = p.state in (ProcState.RUNNING, ProcState.RUNNABLE)
            p.exp_execution_time = (
                p.priority / total * 10.0 if active and total else 0.0
            )
            if p.name.startswith("ps"):
                p.exp_execution_time = 0.0
            if p.state is ProcState.UNUSED:
                continue
            started = (ticks - p.start_time) * 10
            exp = int(p.exp_execution_time * 1000)
            out.append(
                f"{p.name} \t {p.pid} \t {_STATE_NAMES[p.state]} \t {p.priority} "
                f"\t {exp}ms \t\t\t\t {started} ms ago \t {p.runcount_t}\n "
            )
        text = "".join(out)
        self._print(text)
        return text

    def procdump(self) -> str:
        """One line per process in use: pid, state and name."""
        return "".join(
            f"{p.pid} {_STATE_NAMES.get(p.state, '???')} {p.name}\n"
            for p in self.procs
            if p.state is not ProcState.UNUSED
        )