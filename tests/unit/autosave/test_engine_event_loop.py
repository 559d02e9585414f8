"""
Engine tests on a real event loop with real timers.
"""

import asyncio

import pytest

from autosave.core.types import SaveStatus
from autosave.engine.engine import AutosaveEngine
from autosave.transport.memory import InMemoryTransport


class TestEngineOnEventLoop:
    """End-to-end engine behaviour with LoopScheduler and InMemoryTransport."""
    
    @pytest.mark.asyncio
    async def test_debounced_burst_writes_once(self, identity):
        state = {"title": "draft"}
        transport = InMemoryTransport()
        engine = AutosaveEngine(identity, lambda: dict(state), transport, debounce_ms=100)
        
        for i in range(5):
            state["title"] = f"draft {i}"
            engine.mark_dirty()
            await asyncio.sleep(0.005)
        
        assert transport.calls == []
        await asyncio.sleep(0.3)
        await engine.wait_idle()
        
        assert len(transport.calls) == 1
        assert transport.store.get(identity).payload == {"title": "draft 4"}
        assert engine.expected_version == 1
        assert engine.status == SaveStatus.SAVED
    
    @pytest.mark.asyncio
    async def test_edits_during_slow_save_follow_up_once(self, identity):
        state = {"title": "a"}
        transport = InMemoryTransport(latency_ms=200)
        engine = AutosaveEngine(identity, lambda: dict(state), transport, debounce_ms=5)
        
        engine.mark_dirty()
        await asyncio.sleep(0.05)
        assert engine.in_flight is True
        
        for title in ("b", "c", "d"):
            state["title"] = title
            engine.mark_dirty()
        
        await asyncio.sleep(0.5)
        await engine.wait_idle()
        
        assert [payload["title"] for _, payload, _ in transport.calls] == ["a", "d"]
        assert [version for _, _, version in transport.calls] == [None, 1]
        assert engine.expected_version == 2
