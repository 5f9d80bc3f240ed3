"""インタビュー質問と回答のデータモデル。"""

from datetime import UTC, datetime
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, model_validator

QuestionKind = Literal["single-choice", "multiple-choice", "text", "range"]
QuestionScope = Literal["global", "multi-requirement", "specific"]
AnswerValue = str | list[str] | int | float

# 自由記述を許可するセンチネル選択肢ID
OTHER_OPTION_ID = "other"


class QuestionOption(BaseModel):
    """選択式質問の選択肢。"""

    model_config = ConfigDict(frozen=True)

    id: str
    label: str
    description: str | None = None


class BaseQuestion(BaseModel):
    """全ての質問種別に共通する項目。

    category / technical_context / impact_on_estimate は表示専用で検証しない。
    scope / affected_requirement_ids は一括見積もりモードでのみ使用する。
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    label: str = Field(validation_alias="question")
    help_text: str | None = Field(default=None, validation_alias="description")
    required: bool = False
    category: str | None = None
    technical_context: str | None = None
    impact_on_estimate: str | None = None
    scope: QuestionScope | None = None
    affected_requirement_ids: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_scope(self) -> "BaseQuestion":
        if self.scope == "multi-requirement" and not self.affected_requirement_ids:
            raise ValueError(f"Question {self.id}: multi-requirement scope needs affected requirement ids")
        if self.scope == "specific" and len(self.affected_requirement_ids) != 1:
            raise ValueError(f"Question {self.id}: specific scope needs exactly one affected requirement id")
        return self


class SingleChoiceQuestion(BaseQuestion):
    """単一選択の質問。"""

    kind: Literal["single-choice"] = "single-choice"
    options: list[QuestionOption] = Field(default_factory=list)
    default_value: str | None = None

    @property
    def allows_other(self) -> bool:
        return any(o.id == OTHER_OPTION_ID for o in self.options)


class MultipleChoiceQuestion(BaseQuestion):
    """複数選択の質問。"""

    kind: Literal["multiple-choice"] = "multiple-choice"
    options: list[QuestionOption] = Field(default_factory=list)
    default_value: list[str] | None = None

    @property
    def allows_other(self) -> bool:
        return any(o.id == OTHER_OPTION_ID for o in self.options)


class TextQuestion(BaseQuestion):
    """自由記述の質問。"""

    kind: Literal["text"] = "text"
    placeholder: str | None = None
    max_length: int | None = Field(default=None, gt=0)
    default_value: str | None = None


class RangeQuestion(BaseQuestion):
    """数値範囲の質問。"""

    kind: Literal["range"] = "range"
    min: float
    max: float
    step: float = 1
    unit: str | None = None
    default_value: float | None = None

    @model_validator(mode="after")
    def _check_bounds(self) -> "RangeQuestion":
        if self.min > self.max:
            raise ValueError(f"Question {self.id}: min ({self.min}) is greater than max ({self.max})")
        if self.step <= 0:
            raise ValueError(f"Question {self.id}: step must be positive")
        return self


Question = Annotated[
    SingleChoiceQuestion | MultipleChoiceQuestion | TextQuestion | RangeQuestion,
    Field(discriminator="kind"),
]

question_adapter: TypeAdapter[Question] = TypeAdapter(Question)


def parse_question(data: dict[str, Any]) -> Question:
    """辞書から質問モデルを生成する。

    生成AIの出力で使われる ``type`` キーも ``kind`` として受け付ける。
    """
    if "kind" not in data and "type" in data:
        data = {**data, "kind": data["type"]}
    return question_adapter.validate_python(data)


class Answer(BaseModel):
    """質問に対する回答。"""

    model_config = ConfigDict(frozen=True)

    question_id: str
    value: AnswerValue
    answered_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class RequirementStub(BaseModel):
    """一括見積もり対象の要件。"""

    model_config = ConfigDict(frozen=True)

    id: str
    req_code: str
    title: str = ""
    description: str
    tech_preset_id: str | None = None
