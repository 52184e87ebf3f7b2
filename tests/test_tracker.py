from __future__ import annotations

import threading

import pytest

from dexcaliburn.capabilities import MethodInfo
from dexcaliburn.model import CallLocation, MethodSignature, SourceKind
from dexcaliburn.tracker import ReflectiveInvocationTracker
from dexcaliburn.xrefs import XrefTable
from fake_runtime import BASE_METHODS, FakeMethod, FakeRuntime, stack_with_caller

BAR = FakeMethod(
    MethodInfo("com.example.Foo", "bar", "java.lang.String", ("int", "java.lang.Object")),
    lambda receiver, number, extra: f"{receiver}:{number}:{extra}",
)
BAR_SIGNATURE = MethodSignature("com.example.Foo", "bar", "java.lang.String(int, java.lang.Object)")


@pytest.fixture
def tracked():
    runtime = FakeRuntime()
    xrefs = XrefTable()
    tracker = ReflectiveInvocationTracker(runtime, xrefs)
    assert tracker.install().installed
    return runtime, xrefs


def test_same_call_site_is_counted_once(tracked) -> None:
    runtime, xrefs = tracked
    runtime.stack = stack_with_caller("onCreate", 42, "MainActivity.java")
    assert runtime.invoke(BAR, "foo", 1, None) == "foo:1:None"
    assert runtime.invoke(BAR, "foo", 2, None) == "foo:2:None"

    (record,) = xrefs.snapshot()
    assert record.method == BAR_SIGNATURE
    assert record.location == CallLocation("onCreate", 42, SourceKind.DEBUG)
    assert record.count == 2


def test_binary_caller_gets_a_separate_record(tracked) -> None:
    runtime, xrefs = tracked
    runtime.stack = stack_with_caller("onCreate", 42, "MainActivity.java")
    runtime.invoke(BAR, "foo", 1, None)
    runtime.invoke(BAR, "foo", 1, None)
    runtime.stack = stack_with_caller("onCreate", 42, None)
    runtime.invoke(BAR, "foo", 1, None)

    records = {record.location.source_kind: record for record in xrefs.snapshot()}
    assert records[SourceKind.DEBUG].count == 2
    assert records[SourceKind.BINARY].count == 1
    assert records[SourceKind.BINARY].location.position == 42


def test_errors_from_the_invoked_method_propagate(tracked) -> None:
    runtime, xrefs = tracked
    runtime.stack = stack_with_caller("run", 7)

    def explode(receiver):
        raise ValueError("invocation target failed")

    failing = FakeMethod(MethodInfo("com.example.Foo", "explode", "void"), explode)
    with pytest.raises(ValueError, match="invocation target failed"):
        runtime.invoke(failing, None)
    (record,) = xrefs.snapshot()
    assert record.method.prototype == "void()"


def test_shallow_stack_skips_the_record_but_not_the_call(tracked) -> None:
    runtime, xrefs = tracked
    runtime.stack = stack_with_caller("run", 7)[:3]
    assert runtime.invoke(BAR, "x", 0, 0) == "x:0:0"
    assert len(xrefs) == 0


def test_observation_failure_does_not_break_the_call() -> None:
    runtime = FakeRuntime()
    xrefs = XrefTable()
    ReflectiveInvocationTracker(runtime, xrefs).install()

    def broken_stack():
        raise RuntimeError("stack unavailable")

    runtime.current_call_stack = broken_stack  # type: ignore[assignment]
    assert runtime.invoke(BAR, "x", 1, 2) == "x:1:2"
    assert len(xrefs) == 0


def test_caller_depth_is_configurable() -> None:
    runtime = FakeRuntime()
    xrefs = XrefTable()
    ReflectiveInvocationTracker(runtime, xrefs, caller_depth=4).install()
    runtime.stack = stack_with_caller("onCreate", 42)
    runtime.invoke(BAR, "x", 1, 2)
    (record,) = xrefs.snapshot()
    assert record.location.calling_method == "main"


def test_missing_invoke_entry_point_is_reported() -> None:
    runtime = FakeRuntime(methods=BASE_METHODS - {("java.lang.reflect.Method", "invoke")})
    outcome = ReflectiveInvocationTracker(runtime, XrefTable()).install()
    assert not outcome.installed


def test_concurrent_reflective_calls_from_many_threads(tracked) -> None:
    runtime, xrefs = tracked
    threads_count, per_thread = 6, 200

    def worker(line: int) -> None:
        runtime.set_thread_stack(stack_with_caller("worker", line))
        for _ in range(per_thread):
            runtime.invoke(BAR, "t", 0, 0)

    threads = [threading.Thread(target=worker, args=(index % 2,)) for index in range(threads_count)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    counts = sorted(record.count for record in xrefs.snapshot())
    assert counts == [per_thread * threads_count // 2] * 2
