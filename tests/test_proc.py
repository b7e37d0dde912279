import io

import pytest

from teachos.layout import Panic
from teachos.proc import ProcessTable, ProcState


def _table(**kwargs):
    table = ProcessTable(**kwargs)
    init = table.allocproc("init")
    init.state = ProcState.RUNNABLE
    return table, init


def _child(table, parent):
    pid = table.fork(parent)
    return next(p for p in table.procs if p.pid == pid)


def test_allocproc_assigns_increasing_pids_and_defaults():
    table = ProcessTable()
    a = table.allocproc("a")
    b = table.allocproc("b")
    assert (a.pid, b.pid) == (1, 2)
    assert a.state is ProcState.EMBRYO
    assert a.priority == 1
    assert table.initproc is a


def test_allocproc_truncates_name():
    table = ProcessTable()
    p = table.allocproc("x" * 40)
    assert len(p.name) == 15


def test_allocproc_full_table_raises():
    table = ProcessTable(nproc=2)
    table.allocproc("a")
    table.allocproc("b")
    with pytest.raises(OSError):
        table.allocproc("c")


def test_fork_makes_runnable_child():
    table, init = _table()
    init.sz = 4096
    child = _child(table, init)
    assert child.state is ProcState.RUNNABLE
    assert child.parent is init
    assert child.name == init.name
    assert child.sz == 4096


def test_init_cannot_exit():
    table, init = _table()
    with pytest.raises(Panic):
        table.exit(init)


def test_exit_then_wait_reaps_child():
    table, init = _table()
    child = _child(table, init)
    pid = child.pid
    table.exit(child)
    assert child.state is ProcState.ZOMBIE
    assert table.wait(init) == pid
    assert child.state is ProcState.UNUSED
    assert child.parent is None


def test_wait_without_children_raises():
    table, init = _table()
    with pytest.raises(ChildProcessError):
        table.wait(init)


def test_wait_when_killed_raises():
    table, init = _table()
    _child(table, init)
    init.killed = True
    with pytest.raises(InterruptedError):
        table.wait(init)


def test_exit_reparents_children_to_init():
    table, init = _table()
    mid = _child(table, init)
    grandchild = _child(table, mid)
    table.exit(mid)
    assert grandchild.parent is init


def test_kill_wakes_sleeping_process():
    table, init = _table()
    child = _child(table, init)
    table.sleep(child, "chan")
    table.kill(child.pid)
    assert child.killed
    assert child.state is ProcState.RUNNABLE


def test_kill_unknown_pid_raises():
    table, _ = _table()
    with pytest.raises(ProcessLookupError):
        table.kill(999)


def test_sleep_and_wakeup_on_channel():
    table, init = _table()
    a = _child(table, init)
    b = _child(table, init)
    table.sleep(a, "x")
    table.sleep(b, "y")
    table.wakeup("x")
    assert a.state is ProcState.RUNNABLE
    assert b.state is ProcState.SLEEPING


def test_sleep_without_process_panics():
    table, _ = _table()
    with pytest.raises(Panic):
        table.sleep(None, "x")


def test_priority_sum_skips_ps_and_idle():
    table, init = _table()
    a = _child(table, init)
    a.priority = 3
    ps = table.allocproc("ps")
    ps.state = ProcState.RUNNABLE
    ps.priority = 5
    sleeper = _child(table, init)
    sleeper.priority = 7
    table.sleep(sleeper, "c")
    assert table.priority_sum() == init.priority + a.priority


def test_reset_execution_time_shares_ten_units():
    table, init = _table()
    a = _child(table, init)
    a.priority = 3
    table.reset_execution_time()
    total = sum(p.exp_execution_time for p in table.procs)
    assert total == pytest.approx(10.0)
    assert a.exp_execution_time == pytest.approx(3 * init.exp_execution_time)


def test_setprio_changes_priority_and_reports():
    console = io.StringIO()
    table, init = _table(console=console)
    child = _child(table, init)
    assert table.setprio(child.pid, 4) == child.pid
    assert child.priority == 4
    assert console.getvalue() == "Priority successfully changed\n"


def test_schedule_round_runs_in_proportion_to_priority():
    table, init = _table()
    child = _child(table, init)
    child.priority = 4
    ran = table.schedule_round()
    assert ran.count(child.pid) == 4 * ran.count(init.pid)
    assert len(ran) <= 10
    assert all(p.state is ProcState.RUNNABLE for p in (init, child))


def test_schedule_round_runner_can_put_process_to_sleep():
    seen = []

    def runner(p):
        seen.append(p.pid)
        table.sleep(p, "io")

    table = ProcessTable(runner=runner)
    init = table.allocproc("init")
    init.state = ProcState.RUNNABLE
    assert table.schedule_round() == [init.pid]
    assert seen == [init.pid]
    assert init.state is ProcState.SLEEPING


def test_ps_lists_processes_under_header():
    table, init = _table()
    text = table.ps(0)
    lines = text.split("\n")
    assert lines[0] == (
        "name \t pid \t state \t priority \t expected execution time/10s "
        "\t started \t runcyles"
    )
    assert "init" in lines[1]
    assert "runnable" in lines[1]