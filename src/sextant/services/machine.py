"""ウィザードの状態と純粋な状態遷移関数。

状態は不変の値で、``transition(state, event)`` が新しい状態を返す。
遷移できないイベントは状態を変えずにそのまま返す。非同期処理の結果イベントは
発行時のトークンを持ち、現在のトークンと一致しないものは破棄する。
"""

import logging
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from sextant.models.artifact import BulkEstimation, GeneratedPreset
from sextant.models.generation import RequirementAnalysis
from sextant.models.question import Answer, Question, RequirementStub
from sextant.services.review import ReviewDraft
from sextant.validators.answers import (
    DESCRIPTION_MAX_LENGTH,
    DESCRIPTION_MIN_LENGTH,
    is_valid_answer,
    sanitize_prompt_input,
    validate,
)

logger = logging.getLogger(__name__)

Phase = Literal["idle", "loading-questions", "interview", "generating", "review", "saving", "complete", "error"]
WizardMode = Literal["single", "bulk"]

BUSY_PHASES: frozenset[str] = frozenset({"loading-questions", "generating", "saving"})


class SaveTally(BaseModel):
    """一括保存の成功・失敗件数。"""

    model_config = ConfigDict(frozen=True)

    success: int = 0
    failed: int = 0


class WizardState(BaseModel):
    """ウィザード1ダイアログ分のセッション状態。"""

    model_config = ConfigDict(frozen=True)

    mode: WizardMode = "single"
    phase: Phase = "idle"
    token: int = 0
    description: str = ""
    tech_category: str | None = None
    requirements: list[RequirementStub] = Field(default_factory=list)
    questions: list[Question] = Field(default_factory=list)
    answers: dict[str, Answer] = Field(default_factory=dict)
    current_question_index: int = 0
    reasoning: str | None = None
    suggested_tech_category: str | None = None
    requirement_analysis: list[RequirementAnalysis] = Field(default_factory=list)
    review: ReviewDraft | None = None
    estimations: list[BulkEstimation] = Field(default_factory=list)
    selected_ids: list[str] = Field(default_factory=list)
    save_total: int = 0
    save_processed: int = 0
    save_tally: SaveTally = Field(default_factory=SaveTally)
    save_failed_ids: list[str] = Field(default_factory=list)
    error: str | None = None
    validation_errors: list[str] = Field(default_factory=list)
    failed_phase: Phase | None = None

    @property
    def is_busy(self) -> bool:
        return self.phase in BUSY_PHASES

    @property
    def current_question(self) -> Question | None:
        if 0 <= self.current_question_index < len(self.questions):
            return self.questions[self.current_question_index]
        return None

    @property
    def can_proceed(self) -> bool:
        """現在の質問が任意、または妥当な回答済みであればTrue。"""
        question = self.current_question
        if self.phase != "interview" or question is None:
            return False
        if not question.required:
            return True
        answer = self.answers.get(question.id)
        return answer is not None and is_valid_answer(question, answer.value)

    @property
    def is_first_question(self) -> bool:
        return self.current_question_index == 0

    @property
    def is_last_question(self) -> bool:
        return self.current_question_index == len(self.questions) - 1

    @property
    def progress(self) -> float:
        if not self.questions:
            return 0.0
        return (self.current_question_index + 1) / len(self.questions) * 100

    @property
    def answered_count(self) -> int:
        return len(self.answers)

    @property
    def required_answered(self) -> bool:
        return all(
            q.id in self.answers and is_valid_answer(q, self.answers[q.id].value) for q in self.questions if q.required
        )

    @property
    def save_progress(self) -> float:
        if self.save_total == 0:
            return 0.0
        return self.save_processed / self.save_total * 100


class Submit(BaseModel):
    """説明文（一括モードでは要件一覧）を送信して質問生成を開始する。"""

    model_config = ConfigDict(frozen=True)

    description: str = ""
    tech_category: str | None = None
    requirements: list[RequirementStub] = Field(default_factory=list)


class QuestionsLoaded(BaseModel):
    model_config = ConfigDict(frozen=True)

    token: int
    questions: list[Question]
    reasoning: str | None = None
    suggested_tech_category: str | None = None
    requirement_analysis: list[RequirementAnalysis] = Field(default_factory=list)


class QuestionsFailed(BaseModel):
    model_config = ConfigDict(frozen=True)

    token: int
    error: str


class AnswerGiven(BaseModel):
    model_config = ConfigDict(frozen=True)

    answer: Answer


class NextQuestion(BaseModel):
    model_config = ConfigDict(frozen=True)


class PreviousQuestion(BaseModel):
    model_config = ConfigDict(frozen=True)


class GoToQuestion(BaseModel):
    model_config = ConfigDict(frozen=True)

    index: int


class CompleteInterview(BaseModel):
    model_config = ConfigDict(frozen=True)


class PresetGenerated(BaseModel):
    model_config = ConfigDict(frozen=True)

    token: int
    preset: GeneratedPreset


class EstimationsGenerated(BaseModel):
    model_config = ConfigDict(frozen=True)

    token: int
    estimations: list[BulkEstimation]


class GenerationFailed(BaseModel):
    model_config = ConfigDict(frozen=True)

    token: int
    error: str


class EditReview(BaseModel):
    """レビュー中のプリセットを編集後の値で置き換える。"""

    model_config = ConfigDict(frozen=True)

    draft: ReviewDraft


class ToggleSelection(BaseModel):
    model_config = ConfigDict(frozen=True)

    requirement_id: str


class SetSelection(BaseModel):
    model_config = ConfigDict(frozen=True)

    requirement_ids: list[str]


class Save(BaseModel):
    model_config = ConfigDict(frozen=True)


class ItemSaved(BaseModel):
    """一括保存で1件の処理が終わった。"""

    model_config = ConfigDict(frozen=True)

    token: int
    requirement_id: str
    success: bool


class SaveSucceeded(BaseModel):
    model_config = ConfigDict(frozen=True)

    token: int


class SaveFailed(BaseModel):
    model_config = ConfigDict(frozen=True)

    token: int
    error: str


class Retry(BaseModel):
    """エラー状態から、失敗したフェーズを同じ入力でやり直す。"""

    model_config = ConfigDict(frozen=True)


class Restart(BaseModel):
    model_config = ConfigDict(frozen=True)


class Detach(BaseModel):
    """ダイアログを閉じ始めた。画面は残したまま実行中の応答を無効にする。"""

    model_config = ConfigDict(frozen=True)


class Close(BaseModel):
    model_config = ConfigDict(frozen=True)


WizardEvent = (
    Submit
    | QuestionsLoaded
    | QuestionsFailed
    | AnswerGiven
    | NextQuestion
    | PreviousQuestion
    | GoToQuestion
    | CompleteInterview
    | PresetGenerated
    | EstimationsGenerated
    | GenerationFailed
    | EditReview
    | ToggleSelection
    | SetSelection
    | Save
    | ItemSaved
    | SaveSucceeded
    | SaveFailed
    | Retry
    | Restart
    | Detach
    | Close
)

# エラーから同じ入力でやり直せるフェーズ
_RETRYABLE_PHASES: frozenset[str] = frozenset({"loading-questions", "interview", "generating", "saving"})


def initial_state(mode: WizardMode = "single", token: int = 0) -> WizardState:
    """空のセッション状態を返す。"""
    return WizardState(mode=mode, token=token)


def _update(state: WizardState, **changes: object) -> WizardState:
    return state.model_copy(update=changes)


def _fail(state: WizardState, phase: Phase, error: str) -> WizardState:
    return _update(state, phase="error", error=error, failed_phase=phase)


def _successful_ids(estimations: list[BulkEstimation]) -> list[str]:
    return [e.requirement_id for e in estimations if e.success]


def _submit(state: WizardState, event: Submit) -> WizardState | None:
    """入力が制約を満たさない場合は idle のままエラーだけを記録する。"""
    if state.phase != "idle":
        return None
    description = sanitize_prompt_input(event.description)
    if state.mode == "single":
        if not DESCRIPTION_MIN_LENGTH <= len(description) <= DESCRIPTION_MAX_LENGTH:
            return _update(
                state,
                error=f"Description must be between {DESCRIPTION_MIN_LENGTH} and {DESCRIPTION_MAX_LENGTH} characters.",
            )
    elif not event.requirements:
        return _update(state, error="No requirement has a usable description.")
    fresh = initial_state(state.mode, state.token)
    return _update(
        fresh,
        phase="loading-questions",
        description=description,
        tech_category=event.tech_category,
        requirements=list(event.requirements),
    )


def _answer(state: WizardState, event: AnswerGiven) -> WizardState | None:
    if state.phase != "interview":
        return None
    if not any(q.id == event.answer.question_id for q in state.questions):
        return None
    return _update(state, answers={**state.answers, event.answer.question_id: event.answer})


def _complete_interview(state: WizardState) -> WizardState:
    errors = validate(state.answers, state.questions)
    if errors:
        logger.debug("Interview validation failed with %d message(s)", len(errors))
        failed = _fail(state, "interview", "Some answers need attention: " + "; ".join(errors))
        return _update(failed, validation_errors=errors)
    return _update(state, phase="generating", error=None, validation_errors=[], failed_phase=None)


def _retry(state: WizardState) -> WizardState | None:
    if state.phase != "error" or state.failed_phase is None:
        return None
    if state.failed_phase not in _RETRYABLE_PHASES:
        return None
    return _update(state, phase=state.failed_phase, error=None, validation_errors=[], failed_phase=None)


def _apply(state: WizardState, event: WizardEvent) -> WizardState | None:
    """イベントを適用した状態を返す。遷移できない場合はNone。"""
    phase = state.phase
    match event:
        case Submit():
            return _submit(state, event)
        case QuestionsLoaded() if phase == "loading-questions":
            if not event.questions:
                return _fail(state, "loading-questions", "No questions were generated. Add more detail and retry.")
            return _update(
                state,
                phase="interview",
                questions=list(event.questions),
                answers={},
                current_question_index=0,
                reasoning=event.reasoning,
                suggested_tech_category=event.suggested_tech_category,
                requirement_analysis=list(event.requirement_analysis),
            )
        case QuestionsFailed() if phase == "loading-questions":
            return _fail(state, "loading-questions", event.error)
        case AnswerGiven():
            return _answer(state, event)
        case NextQuestion() if phase == "interview":
            if not state.can_proceed or state.is_last_question:
                return None
            return _update(state, current_question_index=state.current_question_index + 1)
        case PreviousQuestion() if phase == "interview":
            if state.is_first_question:
                return None
            return _update(state, current_question_index=state.current_question_index - 1)
        case GoToQuestion() if phase == "interview":
            if not 0 <= event.index < len(state.questions):
                return None
            return _update(state, current_question_index=event.index)
        case CompleteInterview() if phase == "interview":
            return _complete_interview(state)
        case PresetGenerated() if phase == "generating" and state.mode == "single":
            return _update(state, phase="review", review=ReviewDraft.start(event.preset))
        case EstimationsGenerated() if phase == "generating" and state.mode == "bulk":
            if not event.estimations:
                return _fail(state, "generating", "No estimations were generated.")
            return _update(
                state,
                phase="review",
                estimations=list(event.estimations),
                selected_ids=_successful_ids(event.estimations),
            )
        case GenerationFailed() if phase == "generating":
            return _fail(state, "generating", event.error)
        case EditReview() if phase == "review" and state.mode == "single":
            return _update(state, review=event.draft)
        case ToggleSelection() if phase == "review" and state.mode == "bulk":
            if event.requirement_id in state.selected_ids:
                return _update(state, selected_ids=[i for i in state.selected_ids if i != event.requirement_id])
            if event.requirement_id not in _successful_ids(state.estimations):
                return None
            selected = {*state.selected_ids, event.requirement_id}
            return _update(state, selected_ids=[i for i in _successful_ids(state.estimations) if i in selected])
        case SetSelection() if phase == "review" and state.mode == "bulk":
            wanted = set(event.requirement_ids)
            return _update(state, selected_ids=[i for i in _successful_ids(state.estimations) if i in wanted])
        case Save() if phase == "review":
            if state.mode == "single":
                return None if state.review is None else _update(state, phase="saving")
            if not state.selected_ids:
                return None
            return _update(
                state,
                phase="saving",
                save_total=len(state.selected_ids),
                save_processed=0,
                save_tally=SaveTally(),
                save_failed_ids=[],
            )
        case ItemSaved() if phase == "saving" and state.mode == "bulk":
            tally = state.save_tally
            tally = SaveTally(
                success=tally.success + (1 if event.success else 0),
                failed=tally.failed + (0 if event.success else 1),
            )
            failed_ids = state.save_failed_ids if event.success else [*state.save_failed_ids, event.requirement_id]
            return _update(
                state,
                save_processed=state.save_processed + 1,
                save_tally=tally,
                save_failed_ids=failed_ids,
            )
        case SaveSucceeded() if phase == "saving":
            return _update(state, phase="complete")
        case SaveFailed() if phase == "saving":
            return _fail(state, "saving", event.error)
        case Retry():
            return _retry(state)
        case Restart() if phase in ("error", "complete"):
            return initial_state(state.mode, state.token + 1)
        case Detach():
            return _update(state, token=state.token + 1)
        case Close():
            return initial_state(state.mode, state.token + 1)
    return None


def transition(state: WizardState, event: WizardEvent) -> WizardState:
    """状態にイベントを適用し、次の状態を返す。

    Args:
        state: 現在の状態。
        event: 発生したイベント。

    Returns:
        次の状態。遷移できないイベント・古いトークンの結果イベントの場合は
        現在の状態をそのまま返す。
    """
    token = getattr(event, "token", None)
    if token is not None and token != state.token:
        logger.debug("Discarding stale %s (token %s, live %s)", type(event).__name__, token, state.token)
        return state
    next_state = _apply(state, event)
    if next_state is None:
        logger.debug("Ignoring %s in phase %s", type(event).__name__, state.phase)
        return state
    return next_state
