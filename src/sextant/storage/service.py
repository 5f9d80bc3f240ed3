"""ローカルファイルシステムベースのストレージサービス。"""

import json
import logging
import re
from pathlib import Path

from sextant.models.artifact import BulkEstimation, GeneratedPreset
from sextant.models.errors import PersistenceError, StorageError
from sextant.models.generation import PersistResult

logger = logging.getLogger(__name__)

_SLUG_SEPARATORS = re.compile(r"[^a-z0-9]+")


def slugify(name: str) -> str:
    """プリセット名からファイル名に使える識別子を作る。"""
    return _SLUG_SEPARATORS.sub("-", name.lower()).strip("-")


class StorageService:
    """生成したプリセット・見積もりの保存先。

    同じキーへの保存は上書きになるため、保存のやり直しは冪等。
    """

    def __init__(self, data_dir: Path) -> None:
        self._data_dir = data_dir
        self._presets_dir = data_dir / "presets"
        self._estimations_dir = data_dir / "estimations"

    def _safe_file(self, directory: Path, item_id: str) -> Path:
        # ディレクトリトラバーサル防止
        safe_id = Path(item_id).name
        if not safe_id or safe_id != item_id or safe_id in (".", ".."):
            raise StorageError(f"Invalid ID: {item_id}")
        return directory / f"{safe_id}.json"

    def _preset_file(self, preset_id: str) -> Path:
        return self._safe_file(self._presets_dir, preset_id)

    def _estimation_file(self, requirement_id: str) -> Path:
        return self._safe_file(self._estimations_dir, requirement_id)

    async def save_preset(self, preset: GeneratedPreset) -> str:
        """プリセットを保存する。

        Returns:
            保存に使ったプリセットID（名前のスラッグ）。

        Raises:
            StorageError: 名前から有効なIDを作れない場合。
        """
        preset_id = slugify(preset.name)
        if not preset_id:
            raise StorageError(f"Cannot derive an ID from preset name: {preset.name!r}")
        preset_file = self._preset_file(preset_id)
        self._presets_dir.mkdir(parents=True, exist_ok=True)
        preset_file.write_text(preset.model_dump_json(indent=2), encoding="utf-8")
        logger.debug("Wrote preset %s", preset_file)
        return preset_id

    async def load_preset(self, preset_id: str) -> GeneratedPreset:
        """プリセットを読み込む。

        Raises:
            StorageError: プリセットが存在しない場合。
        """
        preset_file = self._preset_file(preset_id)
        if not preset_file.exists():
            raise StorageError(f"Preset not found: {preset_id}")
        data = json.loads(preset_file.read_text(encoding="utf-8"))
        return GeneratedPreset.model_validate(data)

    async def list_presets(self) -> list[str]:
        """保存されているプリセットIDの一覧を返す。"""
        if not self._presets_dir.exists():
            return []
        return sorted(f.stem for f in self._presets_dir.glob("*.json"))

    async def save_estimation(self, estimation: BulkEstimation) -> None:
        """要件の見積もりを保存する。"""
        estimation_file = self._estimation_file(estimation.requirement_id)
        self._estimations_dir.mkdir(parents=True, exist_ok=True)
        estimation_file.write_text(estimation.model_dump_json(indent=2), encoding="utf-8")
        logger.debug("Wrote estimation %s", estimation_file)

    async def load_estimation(self, requirement_id: str) -> BulkEstimation:
        """要件の見積もりを読み込む。

        Raises:
            StorageError: 見積もりが存在しない場合。
        """
        estimation_file = self._estimation_file(requirement_id)
        if not estimation_file.exists():
            raise StorageError(f"Estimation not found: {requirement_id}")
        data = json.loads(estimation_file.read_text(encoding="utf-8"))
        return BulkEstimation.model_validate(data)

    async def list_estimations(self) -> list[str]:
        """保存されている見積もりの要件ID一覧を返す。"""
        if not self._estimations_dir.exists():
            return []
        return sorted(f.stem for f in self._estimations_dir.glob("*.json"))

    async def persist_preset(self, preset: GeneratedPreset) -> PersistResult:
        """ウィザードの保存処理から呼ぶ。失敗は結果として返す。"""
        try:
            await self.save_preset(preset)
        except (StorageError, OSError) as e:
            error = PersistenceError(preset.name, str(e))
            logger.warning("%s", error)
            return PersistResult(success=False, error=str(error))
        return PersistResult(success=True)

    async def persist_estimation(self, estimation: BulkEstimation) -> PersistResult:
        """ウィザードの一括保存から呼ぶ。失敗は結果として返す。"""
        try:
            await self.save_estimation(estimation)
        except (StorageError, OSError) as e:
            error = PersistenceError(estimation.req_code, str(e))
            logger.warning("%s", error)
            return PersistResult(success=False, error=str(error))
        return PersistResult(success=True)
