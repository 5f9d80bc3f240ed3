"""一括見積もりモードのスコープ解決と見積もり結果の整理。

回答の解釈は見積もり生成アダプターが行う。ここでは質問の適用範囲の整理、
進捗表示用の集計、要件ごとの結果の突き合わせのみを行う。
"""

import logging
from collections.abc import Mapping, Sequence

from pydantic import BaseModel

from sextant.models.artifact import BulkEstimation
from sextant.models.generation import RequirementAnalysis, ScopedAnswer
from sextant.models.question import Answer, Question, RequirementStub
from sextant.validators.answers import REQUIREMENT_MIN_LENGTH, sanitize_prompt_input

logger = logging.getLogger(__name__)


class ScopeSummary(BaseModel):
    """質問セットのスコープ別件数。"""

    total_requirements: int
    global_questions: int
    multi_requirement_questions: int
    specific_questions: int


def prepare_requirements(requirements: Sequence[RequirementStub]) -> list[RequirementStub]:
    """要件のタイトル・説明をサニタイズし、説明が短すぎる要件を除外する。"""
    prepared: list[RequirementStub] = []
    for requirement in requirements:
        description = sanitize_prompt_input(requirement.description)
        if len(description) < REQUIREMENT_MIN_LENGTH:
            logger.info("Skipping requirement %s: description too short", requirement.req_code)
            continue
        title = sanitize_prompt_input(requirement.title)
        prepared.append(requirement.model_copy(update={"description": description, "title": title}))
    return prepared


def applicable_requirement_ids(question: Question, requirement_ids: Sequence[str]) -> list[str]:
    """質問の回答が適用される要件IDを返す。"""
    if question.scope in (None, "global"):
        return list(requirement_ids)
    affected = set(question.affected_requirement_ids)
    return [i for i in requirement_ids if i in affected]


def reconcile_question(question: Question, requirement_ids: Sequence[str]) -> Question | None:
    """質問の適用範囲を既知の要件に合わせる。

    スコープ未指定は global とみなし、未知の要件IDは取り除く。
    適用先の要件が残らない質問はNoneを返す。
    """
    if question.scope is None:
        return question.model_copy(update={"scope": "global"})
    if question.scope == "global":
        return question
    known = set(requirement_ids)
    affected = [i for i in question.affected_requirement_ids if i in known]
    if len(affected) != len(question.affected_requirement_ids):
        logger.warning("Question %s references unknown requirements; dropping them", question.id)
    if not affected:
        return None
    return question.model_copy(update={"affected_requirement_ids": affected})


def summarize_scopes(questions: Sequence[Question], requirements: Sequence[RequirementStub]) -> ScopeSummary:
    """進捗表示用にスコープ別の質問数を集計する。"""
    return ScopeSummary(
        total_requirements=len(requirements),
        global_questions=sum(1 for q in questions if q.scope in (None, "global")),
        multi_requirement_questions=sum(1 for q in questions if q.scope == "multi-requirement"),
        specific_questions=sum(1 for q in questions if q.scope == "specific"),
    )


def questions_for_requirement(
    requirement_id: str,
    questions: Sequence[Question],
    requirement_ids: Sequence[str],
) -> list[Question]:
    """指定した要件に適用される質問を返す。"""
    return [q for q in questions if requirement_id in applicable_requirement_ids(q, requirement_ids)]


def reconcile_analysis(
    analysis: Sequence[RequirementAnalysis],
    requirements: Sequence[RequirementStub],
    questions: Sequence[Question],
) -> list[RequirementAnalysis]:
    """要件ごとの事前分析を既知の要件に結び付ける。

    要件は ID、なければ要件コードで突き合わせ、未知の要件の分析は取り除く。
    関連する質問IDは受け入れた質問セットから求め直す。
    """
    by_id = {r.id: r for r in requirements}
    by_code = {r.req_code: r for r in requirements}
    requirement_ids = [r.id for r in requirements]
    reconciled: dict[str, RequirementAnalysis] = {}
    for item in analysis:
        requirement = by_id.get(item.requirement_id) or by_code.get(item.req_code)
        if requirement is None:
            logger.debug("Dropping analysis for unknown requirement %s", item.req_code)
            continue
        relevant = questions_for_requirement(requirement.id, questions, requirement_ids)
        reconciled.setdefault(
            requirement.id,
            item.model_copy(
                update={
                    "requirement_id": requirement.id,
                    "req_code": requirement.req_code,
                    "relevant_question_ids": [q.id for q in relevant],
                }
            ),
        )
    return [reconciled[i] for i in requirement_ids if i in reconciled]


def scoped_answers(answers: Mapping[str, Answer], questions: Sequence[Question]) -> dict[str, ScopedAnswer]:
    """見積もり生成に渡すため、回答に質問のスコープ情報を付与する。"""
    question_map = {q.id: q for q in questions}
    result: dict[str, ScopedAnswer] = {}
    for question_id, answer in answers.items():
        question = question_map.get(question_id)
        if question is None:
            continue
        result[question_id] = ScopedAnswer(
            question_id=question_id,
            value=answer.value,
            scope=question.scope,
            affected_requirement_ids=list(question.affected_requirement_ids),
            category=question.category,
        )
    return result


def reconcile_estimations(
    requirements: Sequence[RequirementStub],
    estimations: Sequence[BulkEstimation],
) -> list[BulkEstimation]:
    """要件ごとに1件の見積もりになるよう結果を整理する。

    結果がない要件は失敗として補い、未知の要件の結果は取り除く。
    """
    by_id: dict[str, BulkEstimation] = {}
    for estimation in estimations:
        by_id.setdefault(estimation.requirement_id, estimation)
    reconciled: list[BulkEstimation] = []
    for requirement in requirements:
        estimation = by_id.get(requirement.id)
        if estimation is None:
            estimation = BulkEstimation.failed(requirement.id, requirement.req_code, "No estimation was returned")
        reconciled.append(estimation)
    return reconciled


def selectable_ids(estimations: Sequence[BulkEstimation]) -> list[str]:
    """保存対象として選択できる（成功した）見積もりの要件IDを返す。"""
    return [e.requirement_id for e in estimations if e.success]
