"""MCPクライアントのモデルにサンプリングで生成を依頼するアダプター。

応答はJSONとして解釈し、pydanticモデルで検証する。応答が解釈できない場合は
``success=False`` の結果を返し、サンプリング要求自体の失敗は TransportError を送出する。
"""

import logging
import re
from typing import Any, TypeVar

from fastmcp.server.dependencies import get_context
from pydantic import AliasChoices, BaseModel, Field, ValidationError

from sextant.models.artifact import HOURS_PER_DAY, BulkEstimation, GeneratedPreset
from sextant.models.errors import GenerationError, TransportError
from sextant.models.generation import (
    BulkEstimationRequest,
    BulkEstimationResult,
    PresetGenerationRequest,
    PresetGenerationResult,
    QuestionGenerationRequest,
    QuestionGenerationResult,
    RequirementAnalysis,
)
from sextant.models.question import Question, parse_question
from sextant.prompts.generation import (
    BULK_ESTIMATION_SYSTEM_PROMPT,
    BULK_QUESTION_SYSTEM_PROMPT,
    PRESET_SYSTEM_PROMPT,
    QUESTION_SYSTEM_PROMPT,
    bulk_estimation_message,
    preset_message,
    question_message,
)
from sextant.services.catalog import ActivityCatalog

logger = logging.getLogger(__name__)

_ReplyT = TypeVar("_ReplyT", bound=BaseModel)

_FENCED_JSON = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")


class _QuestionReply(BaseModel):
    questions: list[dict[str, Any]] = Field(default_factory=list)
    reasoning: str | None = None
    suggested_tech_category: str | None = None
    requirement_analysis: list[dict[str, Any]] = Field(
        default_factory=list,
        validation_alias=AliasChoices("requirement_analysis", "analysis"),
    )


class _PresetReply(BaseModel):
    preset: GeneratedPreset


class _EstimationReply(BaseModel):
    estimations: list[BulkEstimation] = Field(default_factory=list)


def extract_json(text: str) -> str:
    """モデルの応答からJSON部分を取り出す。

    Raises:
        GenerationError: JSONオブジェクトが見つからない場合。
    """
    text = text.strip()
    fenced = _FENCED_JSON.search(text)
    if fenced:
        text = fenced.group(1).strip()
    start, end = text.find("{"), text.rfind("}")
    if start == -1 or end < start:
        raise GenerationError("The model reply did not contain a JSON object")
    return text[start : end + 1]


def _parse_reply(text: str, model: type[_ReplyT]) -> _ReplyT:
    try:
        return model.model_validate_json(extract_json(text))
    except ValidationError as e:
        raise GenerationError(f"The model reply did not match the expected format: {e.error_count()} error(s)") from e


def _parse_questions(raw: list[dict[str, Any]]) -> list[Question]:
    questions: list[Question] = []
    for data in raw:
        try:
            questions.append(parse_question(data))
        except ValidationError as e:
            logger.warning("Dropping malformed question %s: %s", data.get("id"), e)
    return questions


def _parse_analysis(raw: list[dict[str, Any]]) -> list[RequirementAnalysis]:
    analysis: list[RequirementAnalysis] = []
    for data in raw:
        try:
            analysis.append(RequirementAnalysis.model_validate(data))
        except ValidationError as e:
            logger.debug("Dropping malformed requirement analysis %s: %s", data.get("req_code"), e)
    return analysis


def preset_metadata(preset: GeneratedPreset) -> dict[str, Any]:
    """プリセットのアクティビティ件数と見積もり日数の要約。"""
    priorities = [a.priority for a in preset.activities]
    return {
        "total_activities": len(priorities),
        "core_activities": priorities.count("core"),
        "recommended_activities": priorities.count("recommended"),
        "optional_activities": priorities.count("optional"),
        "estimated_days": sum(a.base_hours for a in preset.activities) / HOURS_PER_DAY,
    }


class SamplingGenerationAdapter:
    """質問生成・プリセット生成・一括見積もりをサンプリングで行う。

    ツール呼び出し中のMCPコンテキストを使うため、ツールの処理内から呼び出す。
    """

    def __init__(self, catalog: ActivityCatalog, *, max_tokens: int = 4000, temperature: float = 0.2) -> None:
        self._catalog = catalog
        self._max_tokens = max_tokens
        self._temperature = temperature

    async def _complete(self, system_prompt: str, message: str) -> str:
        ctx = get_context()
        try:
            response = await ctx.sample(
                message,
                system_prompt=system_prompt,
                temperature=self._temperature,
                max_tokens=self._max_tokens,
            )
        except Exception as e:
            raise TransportError(f"Sampling request failed: {e}") from e
        text = getattr(response, "text", None)
        if not text:
            raise TransportError("The client returned no text for the sampling request")
        return text

    def _known_codes(self, tech_category: str | None) -> set[str]:
        return {a.code for a in self._catalog.for_category(tech_category)}

    async def generate_questions(self, request: QuestionGenerationRequest) -> QuestionGenerationResult:
        system_prompt = BULK_QUESTION_SYSTEM_PROMPT if request.requirements else QUESTION_SYSTEM_PROMPT
        text = await self._complete(system_prompt, question_message(request))
        try:
            reply = _parse_reply(text, _QuestionReply)
        except GenerationError as e:
            logger.warning("Question generation reply rejected: %s", e)
            return QuestionGenerationResult(success=False, error=str(e))
        return QuestionGenerationResult(
            success=True,
            questions=_parse_questions(reply.questions),
            reasoning=reply.reasoning,
            suggested_tech_category=reply.suggested_tech_category,
            requirement_analysis=_parse_analysis(reply.requirement_analysis),
        )

    async def generate_preset(self, request: PresetGenerationRequest) -> PresetGenerationResult:
        text = await self._complete(PRESET_SYSTEM_PROMPT, preset_message(request, self._catalog))
        try:
            preset = _parse_reply(text, _PresetReply).preset
        except GenerationError as e:
            logger.warning("Preset generation reply rejected: %s", e)
            return PresetGenerationResult(success=False, error=str(e))
        known = self._known_codes(request.suggested_tech_category)
        activities = [a for a in preset.activities if a.code in known]
        if len(activities) < len(preset.activities):
            logger.warning("Dropped %d activities outside the catalog", len(preset.activities) - len(activities))
            preset = preset.model_copy(update={"activities": activities})
        return PresetGenerationResult(success=True, preset=preset, metadata=preset_metadata(preset))

    async def generate_estimations(self, request: BulkEstimationRequest) -> BulkEstimationResult:
        text = await self._complete(BULK_ESTIMATION_SYSTEM_PROMPT, bulk_estimation_message(request, self._catalog))
        try:
            reply = _parse_reply(text, _EstimationReply)
        except GenerationError as e:
            logger.warning("Bulk estimation reply rejected: %s", e)
            return BulkEstimationResult(success=False, error=str(e))
        known = self._known_codes(request.tech_category)
        estimations = [
            e.model_copy(update={"activities": [a for a in e.activities if a.code in known]}) for e in reply.estimations
        ]
        return BulkEstimationResult(success=True, estimations=estimations)
