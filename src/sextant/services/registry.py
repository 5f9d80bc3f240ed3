"""ウィザードセッションの管理。"""

import logging
import uuid

from sextant.models.errors import SessionNotFoundError, WizardModeError
from sextant.services.adapters import GenerationAdapter
from sextant.services.machine import WizardMode
from sextant.services.wizard import BulkWizard, PresetWizard, WizardOrchestrator
from sextant.storage.service import StorageService

logger = logging.getLogger(__name__)


class WizardRegistry:
    """wizard_id ごとにオーケストレーターを保持する。

    1つのオーケストレーターがダイアログ1つに対応する。
    保持数が ``max_wizards`` に達すると、閉じてリセット済みのウィザードを
    古い順に破棄する。破棄されたウィザードの wizard_id は開き直せない。
    """

    def __init__(
        self,
        storage: StorageService,
        adapter: GenerationAdapter,
        *,
        close_delay: float = 0.0,
        max_wizards: int = 256,
    ) -> None:
        self._storage = storage
        self._adapter = adapter
        self._close_delay = close_delay
        self._max_wizards = max_wizards
        self._wizards: dict[str, WizardOrchestrator] = {}
        # 閉じた順に保持する
        self._closed: dict[str, None] = {}

    def create(self, mode: WizardMode) -> str:
        """新しいウィザードを作成し、wizard_idを返す。"""
        self._evict_closed()
        wizard: WizardOrchestrator
        if mode == "bulk":
            wizard = BulkWizard(
                self._adapter,
                self._adapter,
                self._storage.persist_estimation,
                close_delay=self._close_delay,
            )
        else:
            wizard = PresetWizard(
                self._adapter,
                self._adapter,
                self._storage.persist_preset,
                close_delay=self._close_delay,
            )
        wizard_id = str(uuid.uuid4())
        self._wizards[wizard_id] = wizard
        logger.info("Opened %s wizard %s", mode, wizard_id)
        return wizard_id

    def get(self, wizard_id: str) -> WizardOrchestrator:
        """ウィザードを返す。

        Raises:
            SessionNotFoundError: wizard_idが存在しない場合。
        """
        wizard = self._wizards.get(wizard_id)
        if wizard is None:
            raise SessionNotFoundError(wizard_id)
        return wizard

    def preset(self, wizard_id: str) -> PresetWizard:
        """単一モードのウィザードを返す。

        Raises:
            SessionNotFoundError: wizard_idが存在しない場合。
            WizardModeError: 一括モードのウィザードの場合。
        """
        wizard = self.get(wizard_id)
        if not isinstance(wizard, PresetWizard):
            raise WizardModeError(wizard_id, wizard.mode)
        return wizard

    def bulk(self, wizard_id: str) -> BulkWizard:
        """一括モードのウィザードを返す。

        Raises:
            SessionNotFoundError: wizard_idが存在しない場合。
            WizardModeError: 単一モードのウィザードの場合。
        """
        wizard = self.get(wizard_id)
        if not isinstance(wizard, BulkWizard):
            raise WizardModeError(wizard_id, wizard.mode)
        return wizard

    def close(self, wizard_id: str) -> WizardOrchestrator:
        """ウィザードを閉じる。状態のリセットは遅延して行われる。

        Raises:
            SessionNotFoundError: wizard_idが存在しない場合。
        """
        wizard = self.get(wizard_id)
        wizard.close()
        self._closed.pop(wizard_id, None)
        self._closed[wizard_id] = None
        return wizard

    def reopen(self, wizard_id: str) -> WizardOrchestrator:
        """閉じたウィザードを同じwizard_idで新しい状態にして開き直す。

        Raises:
            SessionNotFoundError: wizard_idが存在しない、または破棄済みの場合。
        """
        wizard = self.get(wizard_id)
        wizard.open()
        self._closed.pop(wizard_id, None)
        return wizard

    def _evict_closed(self) -> None:
        for wizard_id in list(self._closed):
            if len(self._wizards) < self._max_wizards:
                return
            if self._wizards[wizard_id].close_pending:
                continue
            del self._wizards[wizard_id]
            del self._closed[wizard_id]
            logger.info("Discarded closed wizard %s", wizard_id)
        if len(self._wizards) >= self._max_wizards:
            logger.warning("Keeping %d wizards; none of them can be discarded yet", len(self._wizards))
