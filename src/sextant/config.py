"""Sextantサーバーの設定管理。"""

from pathlib import Path

from pydantic_settings import BaseSettings

_PACKAGE_ROOT = Path(__file__).parent
_REPO_ROOT = _PACKAGE_ROOT.parent.parent


class ServerConfig(BaseSettings):
    """サーバー設定。環境変数から読み込み可能。"""

    model_config = {"env_prefix": "SEXTANT_"}

    data_dir: Path = _REPO_ROOT / ".sextant"
    config_dir: Path = _REPO_ROOT / "config"
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"

    # ダイアログを閉じてから状態をリセットするまでの秒数
    close_delay_seconds: float = 0.3

    # 保持するウィザード数の上限。超えると閉じたものから破棄する
    max_wizards: int = 256

    # サンプリング
    sampling_max_tokens: int = 4000
    sampling_temperature: float = 0.2
