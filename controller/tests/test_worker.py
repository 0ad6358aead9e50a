"""Tests for the Pod watch loop."""

import asyncio

import httpx
import pytest
from kubernetes import client

from controller.src.worker import build_engine, watch_pods

class ScriptedPods:
    """Pod client whose watch replays one scripted stream per call."""

    namespace = "kubeci"

    def __init__(self, streams):
        self.streams = list(streams)
        self.calls = []

    async def watch(self, timeout_seconds, label_selector=None):
        self.calls.append((timeout_seconds, label_selector))
        stream = self.streams.pop(0)
        if isinstance(stream, BaseException):
            raise stream
        for event in stream:
            yield event

class RecordingReconciler:
    def __init__(self):
        self.events = []

    async def handle_event(self, event_type, pod):
        self.events.append((event_type, pod.metadata.name))

def pod(name):
    return client.V1Pod(metadata=client.V1ObjectMeta(name=name))

@pytest.mark.asyncio
async def test_watch_reconnects_after_errors_and_stream_ends():
    pods = ScriptedPods([
        [("ADDED", pod("a-0"))],
        RuntimeError("connection reset"),
        [("MODIFIED", pod("a-0")), ("DELETED", pod("a-0"))],
        asyncio.CancelledError(),
    ])
    reconciler = RecordingReconciler()

    with pytest.raises(asyncio.CancelledError):
        await watch_pods(pods, reconciler, timeout_seconds=60, retry_delay=0, label_selector="app=kubeci")

    assert reconciler.events == [("ADDED", "a-0"), ("MODIFIED", "a-0"), ("DELETED", "a-0")]
    assert pods.calls == [(60, "app=kubeci")] * 4

@pytest.mark.asyncio
async def test_build_engine(settings, monkeypatch):
    monkeypatch.setattr("controller.src.worker.get_core_api", lambda: object())

    async with httpx.AsyncClient() as http_client:
        pipeline_service, reconciler = build_engine(settings, http_client)

    assert reconciler.pipeline_service is pipeline_service
    assert reconciler.pods is pipeline_service.pods
    assert pipeline_service.pods.namespace == "kubeci"
    assert pipeline_service.github.application_id == "123456"
