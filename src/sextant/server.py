"""FastMCPベースのMCPサーバーエントリポイント。"""

from fastmcp import FastMCP
from starlette.requests import Request
from starlette.responses import JSONResponse

from sextant.config import ServerConfig
from sextant.prompts.workflow import register_workflow_prompts
from sextant.resources.catalog import register_catalog_resources
from sextant.services.adapters import GenerationAdapter
from sextant.services.catalog import load_catalog
from sextant.services.registry import WizardRegistry
from sextant.services.sampling import SamplingGenerationAdapter
from sextant.storage.service import StorageService
from sextant.tools.saved import register_saved_tools
from sextant.tools.wizard import register_wizard_tools


def create_server(config: ServerConfig | None = None, *, adapter: GenerationAdapter | None = None) -> FastMCP:
    """Sextant MCPサーバーを作成し、ツール・リソース・プロンプトを登録する。

    Args:
        config: サーバー設定。Noneの場合はデフォルト設定を使用。
        adapter: 生成アダプター。Noneの場合はクライアントへのサンプリングで生成する。

    Returns:
        設定済みのFastMCPインスタンス。
    """
    if config is None:
        config = ServerConfig()

    mcp = FastMCP("sextant")

    # データアクセス層
    storage = StorageService(data_dir=config.data_dir)
    catalog = load_catalog(config.config_dir)

    # サービス層
    if adapter is None:
        adapter = SamplingGenerationAdapter(
            catalog,
            max_tokens=config.sampling_max_tokens,
            temperature=config.sampling_temperature,
        )
    registry = WizardRegistry(
        storage,
        adapter,
        close_delay=config.close_delay_seconds,
        max_wizards=config.max_wizards,
    )

    # MCPインターフェース登録
    register_wizard_tools(mcp, registry, catalog)
    register_saved_tools(mcp, storage)
    register_catalog_resources(mcp, catalog)
    register_workflow_prompts(mcp)

    # ヘルスチェックエンドポイント
    @mcp.custom_route("/health", methods=["GET"])
    async def health_check(request: Request) -> JSONResponse:
        return JSONResponse({"status": "ok"})

    return mcp
