from __future__ import annotations

import hashlib

import pytest

from dexcaliburn.capabilities import Invocation
from dexcaliburn.capture import CaptureEncoder
from dexcaliburn.channel import QueueChannel
from dexcaliburn.registry import (
    LOADER_REGISTRY,
    CaptureStrategy,
    LoaderDescriptor,
    install_loader_hooks,
)
from fake_runtime import ALL_CONSTRUCTORS, FakeByteBuffer, FakeHostIO, FakeLoader, FakeRuntime

IN_MEMORY = "dalvik.system.InMemoryDexClassLoader"
PATH_LOADER = "dalvik.system.PathClassLoader"
DEX_LOADER = "dalvik.system.DexClassLoader"


def _setup(runtime: FakeRuntime, files=None):
    channel = QueueChannel()
    captured: list[str] = []
    encoder = CaptureEncoder(FakeHostIO(files), channel, captured.append)
    outcomes = install_loader_hooks(runtime, encoder)
    return channel, captured, outcomes


def test_registry_keeps_overloads_of_the_same_loader() -> None:
    in_memory = [d for d in LOADER_REGISTRY if d.target_type == IN_MEMORY]
    assert len(in_memory) == 3
    arrays = [d for d in in_memory if d.strategy is CaptureStrategy.MEMORY_ARRAY]
    assert len(arrays) == 2
    assert len({(d.target_type, d.constructor_signature) for d in LOADER_REGISTRY}) == len(LOADER_REGISTRY)


def test_all_descriptors_install_when_available() -> None:
    _, _, outcomes = _setup(FakeRuntime())
    assert len(outcomes) == len(LOADER_REGISTRY)
    assert all(outcome.installed for outcome in outcomes)


def test_missing_descriptor_is_skipped_without_aborting_others() -> None:
    missing = (IN_MEMORY, ("[Ljava.nio.ByteBuffer;", "java.lang.String", "java.lang.ClassLoader"))
    runtime = FakeRuntime(constructors=ALL_CONSTRUCTORS - {missing})
    _, _, outcomes = _setup(runtime)
    skipped = [outcome for outcome in outcomes if not outcome.installed]
    assert len(skipped) == 1
    assert "librarySearchPath" in skipped[0].label
    assert skipped[0].reason
    assert sum(outcome.installed for outcome in outcomes) == len(LOADER_REGISTRY) - 1


def test_file_loader_captures_then_constructs_with_original_arguments() -> None:
    runtime = FakeRuntime()
    channel, captured, _ = _setup(runtime, {"/data/app/base.apk!classes2.dex": b"code"})
    signature = ("java.lang.String", "java.lang.ClassLoader")
    loader = runtime.construct(PATH_LOADER, signature, "/data/app/base.apk!classes2.dex", "parent")
    assert loader == FakeLoader(PATH_LOADER, ("/data/app/base.apk!classes2.dex", "parent"))
    assert captured == [f"classes2.dex-{hashlib.sha256(b'code').hexdigest()}"]
    message, data = channel.receive(timeout=1)
    assert message["filename"] == captured[0]
    assert data == b"code"


def test_memory_array_loader_emits_event_per_buffer() -> None:
    runtime = FakeRuntime()
    channel, captured, _ = _setup(runtime)
    buffers = [FakeByteBuffer(b"first"), FakeByteBuffer(b"second")]
    signature = ("[Ljava.nio.ByteBuffer;", "java.lang.ClassLoader")
    loader = runtime.construct(IN_MEMORY, signature, buffers, None)
    assert loader.args == (buffers, None)
    assert len(captured) == 2
    assert all(identifier.startswith("memory-") for identifier in captured)
    assert [data for _, data in channel.drain()] == [b"first", b"second"]


def test_memory_single_loader() -> None:
    runtime = FakeRuntime()
    _, captured, _ = _setup(runtime)
    runtime.construct(IN_MEMORY, ("java.nio.ByteBuffer", "java.lang.ClassLoader"), FakeByteBuffer(b"x"), None)
    assert captured == [f"memory-{hashlib.sha256(b'x').hexdigest()}"]


def test_unreadable_file_still_constructs_loader(caplog) -> None:
    runtime = FakeRuntime()
    channel, captured, _ = _setup(runtime)
    signature = ("java.lang.String", "java.lang.String", "java.lang.String", "java.lang.ClassLoader")
    loader = runtime.construct(DEX_LOADER, signature, "/gone.dex", "/odex", None, "parent")
    assert loader.args == ("/gone.dex", "/odex", None, "parent")
    assert captured == []
    assert channel.drain() == []
    assert "/gone.dex" in caplog.text


def test_malformed_argument_is_logged_and_call_proceeds() -> None:
    runtime = FakeRuntime()
    _, captured, _ = _setup(runtime)
    signature = ("java.nio.ByteBuffer", "java.lang.ClassLoader")
    loader = runtime.construct(IN_MEMORY, signature, object(), None)
    assert isinstance(loader, FakeLoader)
    assert captured == []


def test_original_constructor_errors_propagate_unchanged() -> None:
    runtime = FakeRuntime()
    descriptor = LoaderDescriptor(PATH_LOADER, ("java.lang.String",), CaptureStrategy.FILE, "test")
    encoder = CaptureEncoder(FakeHostIO({"/p.dex": b"p"}), QueueChannel())
    runtime.constructors.add((PATH_LOADER, ("java.lang.String",)))
    install_loader_hooks(runtime, encoder, [descriptor])

    class LoaderFailure(RuntimeError):
        pass

    def original(receiver, *args):
        raise LoaderFailure("boom")

    handler = runtime.hooks[("ctor", PATH_LOADER, ("java.lang.String",))]
    with pytest.raises(LoaderFailure):
        handler(Invocation(None, ("/p.dex",), original))
