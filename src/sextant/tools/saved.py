"""保存済みのプリセット・見積もりを参照するMCPツール定義。"""

from typing import Any

from fastmcp import FastMCP

from sextant.models.errors import StorageError
from sextant.storage.service import StorageService


def register_saved_tools(mcp: FastMCP, storage: StorageService) -> None:
    """保存済み成果物の参照ツールを登録する。"""

    @mcp.tool()
    async def list_saved_presets() -> dict[str, Any]:
        """保存済みの技術プリセットIDの一覧を取得する。"""
        return {"preset_ids": await storage.list_presets()}

    @mcp.tool()
    async def get_saved_preset(preset_id: str) -> dict[str, Any]:
        """保存済みの技術プリセットを取得する。

        Args:
            preset_id: list_saved_presets で取得したプリセットID。
        """
        try:
            preset = await storage.load_preset(preset_id)
        except StorageError as e:
            return {"error": type(e).__name__, "message": str(e)}
        return {"preset_id": preset_id, "preset": preset.model_dump(mode="json")}

    @mcp.tool()
    async def list_saved_estimations() -> dict[str, Any]:
        """見積もりが保存されている要件IDの一覧を取得する。"""
        return {"requirement_ids": await storage.list_estimations()}

    @mcp.tool()
    async def get_saved_estimation(requirement_id: str) -> dict[str, Any]:
        """要件の保存済み見積もりを取得する。

        Args:
            requirement_id: 要件ID。
        """
        try:
            estimation = await storage.load_estimation(requirement_id)
        except StorageError as e:
            return {"error": type(e).__name__, "message": str(e)}
        return {"estimation": estimation.model_dump(mode="json")}
