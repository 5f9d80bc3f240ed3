"""テスト共通フィクスチャ。"""

from pathlib import Path

import pytest
from fakes import FakeGenerator, RecordingPersister

from sextant.config import ServerConfig
from sextant.services.catalog import ActivityCatalog, load_catalog
from sextant.services.wizard import BulkWizard, PresetWizard
from sextant.storage.service import StorageService


@pytest.fixture
def tmp_data_dir(tmp_path: Path) -> Path:
    """テスト用の一時データディレクトリ。"""
    return tmp_path / "sextant-test"


@pytest.fixture
def config_dir() -> Path:
    """設定ファイルディレクトリ。"""
    return Path(__file__).parent.parent / "config"


@pytest.fixture
def storage(tmp_data_dir: Path) -> StorageService:
    """テスト用StorageService。"""
    return StorageService(data_dir=tmp_data_dir)


@pytest.fixture
def catalog(config_dir: Path) -> ActivityCatalog:
    return load_catalog(config_dir)


@pytest.fixture
def generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture
def persister() -> RecordingPersister:
    return RecordingPersister()


@pytest.fixture
def preset_wizard(generator: FakeGenerator, persister: RecordingPersister) -> PresetWizard:
    """テスト用PresetWizard。"""
    return PresetWizard(generator, generator, persister.preset)


@pytest.fixture
def bulk_wizard(generator: FakeGenerator, persister: RecordingPersister) -> BulkWizard:
    """テスト用BulkWizard。"""
    return BulkWizard(generator, generator, persister.estimation)


@pytest.fixture
def server_config(tmp_data_dir: Path, config_dir: Path) -> ServerConfig:
    """テスト用ServerConfig。"""
    return ServerConfig(data_dir=tmp_data_dir, config_dir=config_dir, close_delay_seconds=0)
