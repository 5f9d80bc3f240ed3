"""取り消し可能な遅延実行。"""

import asyncio
from collections.abc import Callable


class DeferredAction:
    """一定時間後に1つの処理を実行する。

    新しく予約するか取り消すと世代が進み、それ以前に予約した処理は
    タイマーが発火しても実行されない。
    """

    def __init__(self) -> None:
        self._handle: asyncio.TimerHandle | None = None
        self._generation = 0

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def schedule(self, delay: float, callback: Callable[[], None]) -> None:
        """処理を予約する。予約済みの処理は取り消す。

        Args:
            delay: 実行までの秒数。
            callback: 実行する処理。
        """
        self.cancel()
        generation = self._generation

        def _fire() -> None:
            if generation != self._generation:
                return
            self._handle = None
            callback()

        self._handle = asyncio.get_running_loop().call_later(delay, _fire)

    def cancel(self) -> bool:
        """予約済みの処理を取り消す。

        Returns:
            取り消した処理があればTrue。
        """
        self._generation += 1
        if self._handle is None:
            return False
        self._handle.cancel()
        self._handle = None
        return True
