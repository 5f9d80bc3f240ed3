"""生成成果物（プリセット・一括見積もり結果）のデータモデル。"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator

ActivityPriority = Literal["core", "recommended", "optional"]

HOURS_PER_DAY = 8

DriverValue = str | int | float


class SuggestedActivity(BaseModel):
    """生成AIが提案したアクティビティ。"""

    model_config = ConfigDict(frozen=True)

    code: str
    title: str
    base_hours: float = Field(ge=0)
    confidence: float = Field(ge=0, le=1)
    priority: ActivityPriority
    group: str | None = None
    reasoning: str | None = None


class GeneratedPreset(BaseModel):
    """単一モードで生成される技術プリセット。"""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    confidence: float = Field(ge=0, le=1)
    reasoning: str = ""
    tech_category: str | None = None
    activities: list[SuggestedActivity] = Field(default_factory=list)
    driver_values: dict[str, DriverValue] = Field(default_factory=dict)
    risk_codes: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_unique_codes(self) -> "GeneratedPreset":
        seen: set[str] = set()
        for activity in self.activities:
            if activity.code in seen:
                raise ValueError(f"Duplicate activity code: {activity.code}")
            seen.add(activity.code)
        return self


class BulkActivity(BaseModel):
    """一括見積もりで要件ごとに選択されたアクティビティ。"""

    model_config = ConfigDict(frozen=True)

    code: str
    name: str
    base_hours: float = Field(ge=0)
    reason: str | None = None
    from_question_id: str | None = None
    from_answer: str | None = None


class BulkEstimation(BaseModel):
    """要件1件分の見積もり結果。

    ``total_base_days`` はアクティビティから導出し、外部からは受け取らない。
    失敗した結果はエラーメッセージを持ち、アクティビティを持たない。
    """

    model_config = ConfigDict(frozen=True)

    requirement_id: str
    req_code: str
    success: bool
    activities: list[BulkActivity] = Field(default_factory=list)
    confidence_score: float = Field(default=0.0, ge=0, le=1)
    reasoning: str | None = None
    error: str | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_base_days(self) -> float:
        return sum(a.base_hours for a in self.activities) / HOURS_PER_DAY

    @model_validator(mode="after")
    def _check_failure_shape(self) -> "BulkEstimation":
        if not self.success:
            if not self.error:
                raise ValueError(f"Failed estimation for {self.req_code} must carry an error")
            if self.activities:
                raise ValueError(f"Failed estimation for {self.req_code} must not carry activities")
        return self

    @classmethod
    def failed(cls, requirement_id: str, req_code: str, error: str) -> "BulkEstimation":
        """失敗を表す見積もり結果を生成する。"""
        return cls(requirement_id=requirement_id, req_code=req_code, success=False, error=error)
