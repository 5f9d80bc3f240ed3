"""アクティビティカタログの読み込み。"""

from pathlib import Path

import yaml
from pydantic import BaseModel, Field

from sextant.models.artifact import ActivityPriority, SuggestedActivity
from sextant.models.errors import CatalogError

CATALOG_FILE = "catalog.yaml"


class CatalogActivity(BaseModel):
    code: str
    title: str
    base_hours: float = Field(ge=0)
    group: str
    tech_category: str = "MULTI"


class CatalogDriver(BaseModel):
    code: str
    values: list[str]
    default: str


class CatalogRisk(BaseModel):
    code: str
    description: str = ""


class TechCategory(BaseModel):
    code: str
    label: str


class ActivityCatalog(BaseModel):
    """生成時に選択可能なアクティビティ・ドライバー・リスクの一覧。"""

    tech_categories: list[TechCategory] = Field(default_factory=list)
    activities: list[CatalogActivity] = Field(default_factory=list)
    drivers: list[CatalogDriver] = Field(default_factory=list)
    risks: list[CatalogRisk] = Field(default_factory=list)

    def find(self, code: str) -> CatalogActivity | None:
        return next((a for a in self.activities if a.code == code), None)

    def for_category(self, tech_category: str | None) -> list[CatalogActivity]:
        """技術カテゴリに該当するアクティビティを返す。MULTI は常に含める。

        カテゴリ未指定の場合は全件を返す。
        """
        if tech_category is None:
            return list(self.activities)
        return [a for a in self.activities if a.tech_category in (tech_category, "MULTI")]

    def suggest(self, code: str, priority: ActivityPriority = "optional") -> SuggestedActivity:
        """カタログのアクティビティを手動追加用の候補に変換する。

        Raises:
            CatalogError: カタログに存在しないコードの場合。
        """
        activity = self.find(code)
        if activity is None:
            raise CatalogError(f"Unknown activity code: {code}")
        return SuggestedActivity(
            code=activity.code,
            title=activity.title,
            base_hours=activity.base_hours,
            confidence=1.0,
            priority=priority,
            group=activity.group,
            reasoning="Added manually from the catalog",
        )


def load_catalog(config_dir: Path) -> ActivityCatalog:
    """設定ディレクトリからカタログを読み込む。

    Raises:
        CatalogError: カタログファイルが存在しない場合。
    """
    catalog_file = config_dir / CATALOG_FILE
    if not catalog_file.exists():
        raise CatalogError(f"Activity catalog not found: {catalog_file}")
    with open(catalog_file, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    return ActivityCatalog.model_validate(data)
