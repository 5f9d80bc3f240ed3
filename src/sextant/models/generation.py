"""生成アダプター・永続化コラボレーターとの境界で受け渡すデータモデル。"""

from typing import Any, Literal

from pydantic import BaseModel, Field

from sextant.models.artifact import BulkEstimation, GeneratedPreset
from sextant.models.question import AnswerValue, Question, RequirementStub


class QuestionGenerationRequest(BaseModel):
    """質問生成の入力。一括モードでは requirements を含む。"""

    description: str
    tech_category: str | None = None
    requirements: list[RequirementStub] = Field(default_factory=list)


class RequirementAnalysis(BaseModel):
    """一括モードの質問生成時に付く要件ごとの事前分析。

    表示専用で、見積もりの入力にはしない。
    """

    requirement_id: str = ""
    req_code: str
    complexity: Literal["LOW", "MEDIUM", "HIGH"] = "MEDIUM"
    ambiguity_score: float | None = Field(default=None, ge=0, le=1)
    topics: list[str] = Field(default_factory=list)
    relevant_question_ids: list[str] = Field(default_factory=list)


class QuestionGenerationResult(BaseModel):
    """質問生成の結果。"""

    success: bool
    questions: list[Question] = Field(default_factory=list)
    reasoning: str | None = None
    suggested_tech_category: str | None = None
    requirement_analysis: list[RequirementAnalysis] = Field(default_factory=list)
    error: str | None = None


class PresetGenerationRequest(BaseModel):
    """プリセット生成の入力。"""

    description: str
    answers: dict[str, AnswerValue]
    suggested_tech_category: str | None = None


class PresetGenerationResult(BaseModel):
    """プリセット生成の結果。"""

    success: bool
    preset: GeneratedPreset | None = None
    error: str | None = None
    metadata: dict[str, Any] | None = None


class ScopedAnswer(BaseModel):
    """スコープ情報を付与した一括モードの回答。"""

    question_id: str
    value: AnswerValue
    scope: str | None = None
    affected_requirement_ids: list[str] = Field(default_factory=list)
    category: str | None = None


class BulkEstimationRequest(BaseModel):
    """一括見積もり生成の入力。"""

    requirements: list[RequirementStub]
    tech_category: str | None = None
    answers: dict[str, ScopedAnswer]


class BulkEstimationResult(BaseModel):
    """一括見積もり生成の結果。要件ごとに1件の見積もりを持つ。"""

    success: bool
    estimations: list[BulkEstimation] = Field(default_factory=list)
    error: str | None = None


class PersistResult(BaseModel):
    """永続化呼び出し1回分の結果。"""

    success: bool
    error: str | None = None
