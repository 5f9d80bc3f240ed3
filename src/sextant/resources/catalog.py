"""カタログ関連のMCPリソース定義。"""

import yaml
from fastmcp import FastMCP

from sextant.services.catalog import ActivityCatalog

_QUESTION_KINDS = {
    "single-choice": {
        "answer": "選択肢ID（文字列）。'other' 選択肢がある場合は自由記述の文字列も可。",
        "fields": ["options", "default_value"],
    },
    "multiple-choice": {
        "answer": "選択肢IDのリスト。'other' 選択肢がある場合は自由記述を1件まで含められる。",
        "fields": ["options", "default_value"],
    },
    "text": {
        "answer": "文字列。max_length を超えないこと。",
        "fields": ["placeholder", "max_length", "default_value"],
    },
    "range": {
        "answer": "min 以上 max 以下の数値。",
        "fields": ["min", "max", "step", "unit", "default_value"],
    },
}


def register_catalog_resources(mcp: FastMCP, catalog: ActivityCatalog) -> None:
    """カタログ関連のMCPリソースを登録する。"""

    @mcp.resource("sextant://catalog/activities")
    async def catalog_activities() -> str:
        """見積もりに使うアクティビティ・ドライバー・リスクのカタログ。

        add_activity ツールで指定できるアクティビティコードを含みます。
        """
        return yaml.dump(catalog.model_dump(), allow_unicode=True, default_flow_style=False, sort_keys=False)

    @mcp.resource("sextant://catalog/question-kinds")
    async def question_kinds() -> str:
        """質問の種類ごとの回答形式。"""
        return yaml.dump(_QUESTION_KINDS, allow_unicode=True, default_flow_style=False, sort_keys=False)
