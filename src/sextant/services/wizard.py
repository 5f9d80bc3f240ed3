"""ウィザードのオーケストレーター。

1つのオーケストレーターが1ダイアログ分の ``WizardState`` を所有し、
全ての状態変更を ``transition`` 経由で行う。アダプター呼び出しは発行時の
トークンを付けて結果を戻すため、ダイアログを閉じた後に届いた応答は破棄される。
非同期の公開操作は例外を送出せず、エラーは状態に記録する。
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Sequence

from sextant.models.artifact import BulkEstimation, GeneratedPreset, SuggestedActivity
from sextant.models.errors import ReviewEditError
from sextant.models.generation import (
    BulkEstimationRequest,
    PersistResult,
    PresetGenerationRequest,
    QuestionGenerationRequest,
    RequirementAnalysis,
)
from sextant.models.question import (
    Answer,
    AnswerValue,
    MultipleChoiceQuestion,
    Question,
    RequirementStub,
    SingleChoiceQuestion,
)
from sextant.services import choices
from sextant.services.adapters import (
    BulkEstimator,
    EstimationPersister,
    PresetGenerator,
    PresetPersister,
    QuestionGenerator,
)
from sextant.services.deferred import DeferredAction
from sextant.services.machine import (
    AnswerGiven,
    Close,
    CompleteInterview,
    Detach,
    EditReview,
    EstimationsGenerated,
    GenerationFailed,
    GoToQuestion,
    ItemSaved,
    NextQuestion,
    PresetGenerated,
    PreviousQuestion,
    QuestionsFailed,
    QuestionsLoaded,
    Restart,
    Retry,
    Save,
    SaveFailed,
    SaveSucceeded,
    SetSelection,
    Submit,
    ToggleSelection,
    WizardEvent,
    WizardMode,
    WizardState,
    initial_state,
    transition,
)
from sextant.services.review import ReviewDraft
from sextant.services.scope import (
    ScopeSummary,
    prepare_requirements,
    reconcile_analysis,
    reconcile_estimations,
    reconcile_question,
    scoped_answers,
    selectable_ids,
    summarize_scopes,
)

logger = logging.getLogger(__name__)

QUESTION_ERROR_FALLBACK = "Failed to generate questions. Please try again."
GENERATION_ERROR_FALLBACK = "Failed to generate the estimate. Please try again."
SAVE_ERROR_FALLBACK = "Failed to save. Please try again."

ProgressCallback = Callable[[WizardState], Awaitable[None]]


def _error_message(exc: Exception, fallback: str) -> str:
    return str(exc) or fallback


class WizardOrchestrator(ABC):
    """単一・一括モード共通のオーケストレーター。

    サブクラスは質問生成の入力、生成結果の受け入れ、成果物の生成と保存を実装する。
    """

    mode: WizardMode = "single"

    def __init__(self, question_generator: QuestionGenerator, *, close_delay: float = 0.0) -> None:
        self._question_generator = question_generator
        self._close_delay = close_delay
        self._deferred = DeferredAction()
        self._state = initial_state(self.mode)

    @property
    def state(self) -> WizardState:
        return self._state

    @property
    def current_question(self) -> Question | None:
        return self._state.current_question

    @property
    def can_proceed(self) -> bool:
        return self._state.can_proceed

    @property
    def is_first_question(self) -> bool:
        return self._state.is_first_question

    @property
    def is_last_question(self) -> bool:
        return self._state.is_last_question

    @property
    def progress(self) -> float:
        return self._state.progress

    @property
    def answered_count(self) -> int:
        return self._state.answered_count

    @property
    def required_answered(self) -> bool:
        return self._state.required_answered

    @property
    def close_pending(self) -> bool:
        return self._deferred.pending

    def dispatch(self, event: WizardEvent) -> bool:
        """イベントを適用する。

        Returns:
            状態が変化した場合はTrue。無視されたイベントではFalse。
        """
        before = self._state
        self._state = transition(before, event)
        return self._state is not before

    # --- インタビュー ---

    def answer(self, question_id: str, value: AnswerValue) -> bool:
        """現在の質問セットの質問に回答する。値はそのまま保持する。"""
        return self.dispatch(AnswerGiven(answer=Answer(question_id=question_id, value=value)))

    def toggle_choice(self, question_id: str, option_id: str) -> bool:
        """選択式質問の選択肢を選ぶ。複数選択では選択状態を反転する。"""
        question = self._find_question(question_id)
        if isinstance(question, MultipleChoiceQuestion):
            return self.answer(question_id, choices.toggle_option(question, self._list_value(question_id), option_id))
        if isinstance(question, SingleChoiceQuestion):
            return self.answer(question_id, option_id)
        return False

    def set_other_text(self, question_id: str, text: str) -> bool:
        """「その他」の自由記述を入力する。"""
        question = self._find_question(question_id)
        if isinstance(question, MultipleChoiceQuestion) and question.allows_other:
            return self.answer(question_id, choices.set_other_text(question, self._list_value(question_id), text))
        if isinstance(question, SingleChoiceQuestion) and question.allows_other:
            return self.answer(question_id, choices.set_single_other_text(question, text))
        return False

    def next_question(self) -> bool:
        return self.dispatch(NextQuestion())

    def previous_question(self) -> bool:
        return self.dispatch(PreviousQuestion())

    def go_to_question(self, index: int) -> bool:
        return self.dispatch(GoToQuestion(index=index))

    async def complete_interview(self) -> WizardState:
        """回答を検証し、成果物の生成を開始する。

        検証に失敗した場合は error フェーズに遷移し、メッセージを
        ``state.validation_errors`` に保持する。
        """
        if self.dispatch(CompleteInterview()) and self._state.phase == "generating":
            await self._generate()
        return self._state

    # --- 回復・ライフサイクル ---

    async def retry(self) -> WizardState:
        """失敗したフェーズを同じ入力でやり直す。"""
        if not self.dispatch(Retry()):
            return self._state
        match self._state.phase:
            case "loading-questions":
                await self._load_questions()
            case "generating":
                await self._generate()
            case "saving":
                await self._save()
        return self._state

    def restart(self) -> bool:
        """error・complete から最初の状態に戻る。"""
        return self.dispatch(Restart())

    def close(self, delay: float | None = None) -> None:
        """ダイアログを閉じる。

        実行中の応答は直ちに無効にし、状態のリセットは ``delay`` 秒後に行う。
        リセット前に ``open`` された場合は予約を取り消す。

        Args:
            delay: リセットまでの秒数。Noneの場合は生成時の設定値。
        """
        delay = self._close_delay if delay is None else delay
        self.dispatch(Detach())
        if delay <= 0:
            self._deferred.cancel()
            self._reset()
            return
        self._deferred.schedule(delay, self._reset)

    def open(self) -> None:
        """新しいセッションを開始する。予約済みのリセットは取り消す。"""
        if self._deferred.cancel():
            logger.debug("Cancelled pending reset for %s wizard", self.mode)
        self._reset()

    def _reset(self) -> None:
        self.dispatch(Close())

    # --- アダプター呼び出し ---

    async def _load_questions(self) -> None:
        state = self._state
        token = state.token
        try:
            result = await self._question_generator.generate_questions(self._question_request(state))
        except Exception as e:
            logger.warning("Question generation failed: %s", e, exc_info=True)
            self.dispatch(QuestionsFailed(token=token, error=_error_message(e, QUESTION_ERROR_FALLBACK)))
            return
        if not result.success:
            logger.info("Question generator reported failure: %s", result.error)
            self.dispatch(QuestionsFailed(token=token, error=result.error or QUESTION_ERROR_FALLBACK))
            return
        questions = self._accept_questions(state, result.questions)
        self.dispatch(
            QuestionsLoaded(
                token=token,
                questions=questions,
                reasoning=result.reasoning,
                suggested_tech_category=result.suggested_tech_category,
                requirement_analysis=self._accept_analysis(state, questions, result.requirement_analysis),
            )
        )

    def _question_request(self, state: WizardState) -> QuestionGenerationRequest:
        return QuestionGenerationRequest(
            description=state.description,
            tech_category=state.tech_category,
            requirements=list(state.requirements),
        )

    def _accept_questions(self, state: WizardState, questions: list[Question]) -> list[Question]:
        return questions

    def _accept_analysis(
        self,
        state: WizardState,
        questions: list[Question],
        analysis: list[RequirementAnalysis],
    ) -> list[RequirementAnalysis]:
        return []

    @abstractmethod
    async def _generate(self) -> None:
        """成果物を生成し、結果イベントを適用する。"""

    @abstractmethod
    async def _save(self) -> None:
        """成果物を保存し、結果イベントを適用する。"""

    # --- 内部ヘルパー ---

    def _find_question(self, question_id: str) -> Question | None:
        return next((q for q in self._state.questions if q.id == question_id), None)

    def _list_value(self, question_id: str) -> list[str]:
        answer = self._state.answers.get(question_id)
        if answer is None or not isinstance(answer.value, list):
            return []
        return list(answer.value)


class PresetWizard(WizardOrchestrator):
    """単一モード: 説明文から技術プリセットを生成・レビュー・保存する。"""

    mode: WizardMode = "single"

    def __init__(
        self,
        question_generator: QuestionGenerator,
        preset_generator: PresetGenerator,
        persist_preset: PresetPersister,
        *,
        close_delay: float = 0.0,
    ) -> None:
        super().__init__(question_generator, close_delay=close_delay)
        self._preset_generator = preset_generator
        self._persist_preset = persist_preset

    async def submit_description(self, description: str, tech_category: str | None = None) -> WizardState:
        """説明文を送信し、質問を生成する。

        サニタイズ後の長さが制約を満たさない場合は idle のままエラーを記録する。
        """
        if self.dispatch(Submit(description=description, tech_category=tech_category)):
            if self._state.phase == "loading-questions":
                await self._load_questions()
        return self._state

    async def _generate(self) -> None:
        state = self._state
        token = state.token
        request = PresetGenerationRequest(
            description=state.description,
            answers={question_id: answer.value for question_id, answer in state.answers.items()},
            suggested_tech_category=state.suggested_tech_category or state.tech_category,
        )
        try:
            result = await self._preset_generator.generate_preset(request)
        except Exception as e:
            logger.warning("Preset generation failed: %s", e, exc_info=True)
            self.dispatch(GenerationFailed(token=token, error=_error_message(e, GENERATION_ERROR_FALLBACK)))
            return
        if not result.success or result.preset is None:
            logger.info("Preset generator reported failure: %s", result.error)
            self.dispatch(GenerationFailed(token=token, error=result.error or GENERATION_ERROR_FALLBACK))
            return
        self.dispatch(PresetGenerated(token=token, preset=result.preset))

    # --- レビュー ---

    @property
    def review(self) -> ReviewDraft | None:
        return self._state.review

    @property
    def can_save(self) -> bool:
        """保存に必要な数のアクティビティが採用されていればTrue。"""
        return self._state.phase == "review" and self._state.review is not None and self._state.review.can_save

    def rename(self, name: str) -> GeneratedPreset:
        """プリセット名を変更する。

        Raises:
            ReviewEditError: レビュー中でない、または名前が短すぎる場合。
        """
        return self._edit(self._draft().rename(name))

    def redescribe(self, description: str) -> GeneratedPreset:
        """プリセットの説明を変更する。

        Raises:
            ReviewEditError: レビュー中でない、または説明が短すぎる場合。
        """
        return self._edit(self._draft().redescribe(description))

    def toggle_activity(self, code: str) -> GeneratedPreset:
        return self._edit(self._draft().toggle_activity(code))

    def add_activity(self, activity: SuggestedActivity) -> GeneratedPreset:
        return self._edit(self._draft().add_activity(activity))

    def _draft(self) -> ReviewDraft:
        if self._state.phase != "review" or self._state.review is None:
            raise ReviewEditError("No preset is under review")
        return self._state.review

    def _edit(self, draft: ReviewDraft) -> GeneratedPreset:
        self.dispatch(EditReview(draft=draft))
        return draft.current

    # --- 保存 ---

    async def save(self) -> WizardState:
        """レビュー中のプリセットを保存する。"""
        if self.dispatch(Save()):
            await self._save()
        return self._state

    async def _save(self) -> None:
        state = self._state
        token = state.token
        if state.review is None:
            self.dispatch(SaveFailed(token=token, error=SAVE_ERROR_FALLBACK))
            return
        try:
            result = await self._persist_preset(state.review.current)
        except Exception as e:
            logger.warning("Saving preset failed: %s", e, exc_info=True)
            self.dispatch(SaveFailed(token=token, error=_error_message(e, SAVE_ERROR_FALLBACK)))
            return
        if not result.success:
            self.dispatch(SaveFailed(token=token, error=result.error or SAVE_ERROR_FALLBACK))
            return
        logger.info("Saved preset %r", state.review.current.name)
        self.dispatch(SaveSucceeded(token=token))


class BulkWizard(WizardOrchestrator):
    """一括モード: 複数要件を1回のインタビューでまとめて見積もる。"""

    mode: WizardMode = "bulk"

    def __init__(
        self,
        question_generator: QuestionGenerator,
        estimator: BulkEstimator,
        persist_estimation: EstimationPersister,
        *,
        close_delay: float = 0.0,
    ) -> None:
        super().__init__(question_generator, close_delay=close_delay)
        self._estimator = estimator
        self._persist_estimation = persist_estimation

    async def analyze_requirements(
        self,
        requirements: Sequence[RequirementStub],
        tech_category: str | None = None,
        description: str = "",
    ) -> WizardState:
        """要件一覧を送信し、スコープ付きの質問を生成する。

        説明が短すぎる要件は除外する。残る要件がなければ idle のままエラーを記録する。

        Args:
            requirements: 見積もり対象の要件。
            tech_category: 技術カテゴリ。
            description: プロジェクト全体の補足説明。
        """
        prepared = prepare_requirements(requirements)
        if len(prepared) < len(requirements):
            logger.info("Analyzing %d of %d requirements", len(prepared), len(requirements))
        submitted = self.dispatch(Submit(description=description, tech_category=tech_category, requirements=prepared))
        if submitted and self._state.phase == "loading-questions":
            await self._load_questions()
        return self._state

    def _accept_questions(self, state: WizardState, questions: list[Question]) -> list[Question]:
        requirement_ids = [r.id for r in state.requirements]
        accepted = [reconcile_question(q, requirement_ids) for q in questions]
        return [q for q in accepted if q is not None]

    def _accept_analysis(
        self,
        state: WizardState,
        questions: list[Question],
        analysis: list[RequirementAnalysis],
    ) -> list[RequirementAnalysis]:
        return reconcile_analysis(analysis, state.requirements, questions)

    @property
    def scope_summary(self) -> ScopeSummary:
        return summarize_scopes(self._state.questions, self._state.requirements)

    async def _generate(self) -> None:
        state = self._state
        token = state.token
        request = BulkEstimationRequest(
            requirements=list(state.requirements),
            tech_category=state.tech_category or state.suggested_tech_category,
            answers=scoped_answers(state.answers, state.questions),
        )
        try:
            result = await self._estimator.generate_estimations(request)
        except Exception as e:
            logger.warning("Bulk estimation failed: %s", e, exc_info=True)
            self.dispatch(GenerationFailed(token=token, error=_error_message(e, GENERATION_ERROR_FALLBACK)))
            return
        if not result.success:
            logger.info("Bulk estimator reported failure: %s", result.error)
            self.dispatch(GenerationFailed(token=token, error=result.error or GENERATION_ERROR_FALLBACK))
            return
        if not result.estimations:
            self.dispatch(GenerationFailed(token=token, error="No estimations were generated."))
            return
        estimations = reconcile_estimations(state.requirements, result.estimations)
        self.dispatch(EstimationsGenerated(token=token, estimations=estimations))

    # --- レビュー ---

    def toggle_selection(self, requirement_id: str) -> bool:
        """見積もりの保存対象選択を切り替える。失敗した見積もりは選択できない。"""
        return self.dispatch(ToggleSelection(requirement_id=requirement_id))

    def select_all_successful(self) -> bool:
        return self.dispatch(SetSelection(requirement_ids=selectable_ids(self._state.estimations)))

    def clear_selection(self) -> bool:
        return self.dispatch(SetSelection(requirement_ids=[]))

    @property
    def selected_estimations(self) -> list[BulkEstimation]:
        selected = set(self._state.selected_ids)
        return [e for e in self._state.estimations if e.requirement_id in selected]

    # --- 保存 ---

    async def save_selected(self, on_progress: ProgressCallback | None = None) -> WizardState:
        """選択した見積もりを1件ずつ保存する。

        1件の失敗で残りの保存は止めず、成功・失敗件数を集計して complete に遷移する。
        保存中にダイアログが閉じられた場合は残りを保存しない。

        Args:
            on_progress: 1件処理するごとに呼ばれるコールバック。
        """
        if self.dispatch(Save()):
            await self._save(on_progress)
        return self._state

    async def _save(self, on_progress: ProgressCallback | None = None) -> None:
        token = self._state.token
        for estimation in self.selected_estimations:
            if self._state.token != token:
                break
            success = await self._persist_one(estimation)
            if not self.dispatch(ItemSaved(token=token, requirement_id=estimation.requirement_id, success=success)):
                break
            if on_progress is not None:
                await self._report_progress(on_progress)
        else:
            tally = self._state.save_tally
            logger.info("Bulk save finished: %d saved, %d failed", tally.success, tally.failed)
            self.dispatch(SaveSucceeded(token=token))
            return
        logger.info("Bulk save stopped: wizard was closed")

    async def _report_progress(self, on_progress: ProgressCallback) -> None:
        # 通知の失敗で保存を止めない
        try:
            await on_progress(self._state)
        except Exception as e:
            logger.warning("Progress notification failed: %s", e, exc_info=True)

    async def _persist_one(self, estimation: BulkEstimation) -> bool:
        try:
            result: PersistResult = await self._persist_estimation(estimation)
        except Exception as e:
            logger.warning("Saving estimation %s failed: %s", estimation.req_code, e, exc_info=True)
            return False
        if not result.success:
            logger.warning("Saving estimation %s failed: %s", estimation.req_code, result.error)
        return result.success
