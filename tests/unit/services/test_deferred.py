"""DeferredActionのユニットテスト。"""

import asyncio

from sextant.services.deferred import DeferredAction


class TestDeferredAction:
    async def test_callback_runs_after_delay(self) -> None:
        fired: list[str] = []
        action = DeferredAction()
        action.schedule(0.01, lambda: fired.append("reset"))
        assert action.pending
        await asyncio.sleep(0.05)
        assert fired == ["reset"]
        assert not action.pending

    async def test_cancel_prevents_callback(self) -> None:
        fired: list[str] = []
        action = DeferredAction()
        action.schedule(0.01, lambda: fired.append("reset"))
        assert action.cancel()
        await asyncio.sleep(0.05)
        assert fired == []
        assert not action.cancel()

    async def test_reschedule_replaces_pending_callback(self) -> None:
        fired: list[str] = []
        action = DeferredAction()
        action.schedule(0.01, lambda: fired.append("first"))
        action.schedule(0.01, lambda: fired.append("second"))
        await asyncio.sleep(0.05)
        assert fired == ["second"]
