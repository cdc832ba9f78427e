"""Tests for the execution event bus."""

from __future__ import annotations

from bootcore.execution.events import EventBus, EventRecorder, ExecutionEvent


def test_fans_out_to_every_sink():
    first, second = EventRecorder(), EventRecorder()
    bus = EventBus([first])
    bus.subscribe(second)

    record = bus.emit("gate.poll", "argocd", "not_ready", attempt=1, detail="0/1 available")

    assert first.events == [record]
    assert second.events == [record]
    assert record.detail == "0/1 available"


def test_failing_sink_does_not_stop_others():
    def broken(event):
        raise RuntimeError("loki down")

    recorder = EventRecorder()
    bus = EventBus([broken, recorder])
    bus.emit("action.started", "a", "running")
    assert len(recorder.events) == 1


def test_recorder_filters_by_name_and_action():
    recorder = EventRecorder()
    bus = EventBus([recorder])
    bus.emit("action.started", "a", "running")
    bus.emit("action.started", "b", "running")
    bus.emit("action.finished", "a", "succeeded")

    assert len(recorder.named("action.started")) == 2
    assert [e.outcome for e in recorder.named("action.finished", "a")] == ["succeeded"]
    assert recorder.named("action.finished", "b") == []


def test_to_dict():
    data = ExecutionEvent(event="action.retry", action="a", outcome="backoff", attempt=2).to_dict()
    assert data["event"] == "action.retry"
    assert data["attempt"] == 2
    assert data["detail"] == ""
    assert data["timestamp"].endswith("+00:00")
