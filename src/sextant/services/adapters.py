"""生成アダプターと永続化コラボレーターのインターフェース。"""

from collections.abc import Awaitable, Callable
from typing import Protocol

from sextant.models.artifact import BulkEstimation, GeneratedPreset
from sextant.models.generation import (
    BulkEstimationRequest,
    BulkEstimationResult,
    PersistResult,
    PresetGenerationRequest,
    PresetGenerationResult,
    QuestionGenerationRequest,
    QuestionGenerationResult,
)


class QuestionGenerator(Protocol):
    """説明文（一括モードでは要件一覧）から質問セットを生成する。"""

    async def generate_questions(self, request: QuestionGenerationRequest) -> QuestionGenerationResult: ...


class PresetGenerator(Protocol):
    """説明文と回答から技術プリセットを生成する。"""

    async def generate_preset(self, request: PresetGenerationRequest) -> PresetGenerationResult: ...


class BulkEstimator(Protocol):
    """スコープ付きの回答から要件ごとの見積もりを生成する。"""

    async def generate_estimations(self, request: BulkEstimationRequest) -> BulkEstimationResult: ...


# 呼び出し側の判断で再試行しても安全であること
PresetPersister = Callable[[GeneratedPreset], Awaitable[PersistResult]]
EstimationPersister = Callable[[BulkEstimation], Awaitable[PersistResult]]


class GenerationAdapter(QuestionGenerator, PresetGenerator, BulkEstimator, Protocol):
    """3種類の生成をまとめて提供するアダプター。"""
