"""状態遷移関数のユニットテスト。"""

from fakes import ECOMMERCE_DESCRIPTION, estimation, interview_questions, requirements, two_activity_preset

from sextant.models.artifact import BulkEstimation
from sextant.models.question import Answer, RangeQuestion, TextQuestion
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
    Submit,
    ToggleSelection,
    WizardState,
    initial_state,
    transition,
)


def _answer(question_id: str, value: object) -> AnswerGiven:
    return AnswerGiven(answer=Answer(question_id=question_id, value=value))  # type: ignore[arg-type]


def _interview() -> WizardState:
    state = transition(initial_state(), Submit(description=ECOMMERCE_DESCRIPTION))
    return transition(state, QuestionsLoaded(token=state.token, questions=interview_questions()))


def _answered_interview() -> WizardState:
    state = _interview()
    state = transition(state, _answer("lifecycle", "new"))
    return transition(state, _answer("integrations", ["sap"]))


def _review() -> WizardState:
    state = transition(_answered_interview(), CompleteInterview())
    return transition(state, PresetGenerated(token=state.token, preset=two_activity_preset()))


def _bulk_review(estimations: list[BulkEstimation]) -> WizardState:
    state = transition(initial_state("bulk"), Submit(requirements=requirements(len(estimations))))
    state = transition(state, QuestionsLoaded(token=state.token, questions=interview_questions()[:1]))
    state = transition(state, _answer("lifecycle", "new"))
    state = transition(state, CompleteInterview())
    return transition(state, EstimationsGenerated(token=state.token, estimations=estimations))


class TestSubmit:
    def test_valid_description_starts_loading(self) -> None:
        state = transition(initial_state(), Submit(description=f"  {ECOMMERCE_DESCRIPTION}  "))
        assert state.phase == "loading-questions"
        assert state.description == ECOMMERCE_DESCRIPTION

    def test_short_description_stays_idle_with_error(self) -> None:
        state = transition(initial_state(), Submit(description="<too short>"))
        assert state.phase == "idle"
        assert state.error is not None

    def test_overlong_description_stays_idle(self) -> None:
        state = transition(initial_state(), Submit(description="a" * 1001))
        assert state.phase == "idle"
        assert state.error is not None

    def test_bulk_without_requirements_stays_idle(self) -> None:
        state = transition(initial_state("bulk"), Submit(description="context"))
        assert state.phase == "idle"
        assert state.error is not None

    def test_repeated_submit_while_loading_is_ignored(self) -> None:
        loading = transition(initial_state(), Submit(description=ECOMMERCE_DESCRIPTION))
        assert transition(loading, Submit(description=ECOMMERCE_DESCRIPTION)) is loading


class TestQuestionLoading:
    def test_questions_loaded_enters_interview(self) -> None:
        state = _interview()
        assert state.phase == "interview"
        assert state.current_question_index == 0
        assert state.is_first_question

    def test_empty_question_set_is_an_error(self) -> None:
        state = transition(initial_state(), Submit(description=ECOMMERCE_DESCRIPTION))
        state = transition(state, QuestionsLoaded(token=state.token, questions=[]))
        assert state.phase == "error"
        assert state.failed_phase == "loading-questions"

    def test_questions_failed_keeps_adapter_message(self) -> None:
        state = transition(initial_state(), Submit(description=ECOMMERCE_DESCRIPTION))
        state = transition(state, QuestionsFailed(token=state.token, error="quota exceeded"))
        assert state.phase == "error"
        assert state.error == "quota exceeded"

    def test_stale_response_is_discarded(self) -> None:
        loading = transition(initial_state(), Submit(description=ECOMMERCE_DESCRIPTION))
        stale = QuestionsLoaded(token=loading.token - 1, questions=interview_questions())
        assert transition(loading, stale) is loading


class TestInterviewNavigation:
    def test_required_question_blocks_next_until_answered(self) -> None:
        state = _interview()
        assert not state.can_proceed
        assert transition(state, NextQuestion()) is state

        state = transition(state, _answer("lifecycle", "new"))
        assert state.can_proceed
        assert transition(state, NextQuestion()).current_question_index == 1

    def test_invalid_answer_is_stored_but_blocks_next(self) -> None:
        state = transition(_interview(), _answer("lifecycle", ["new"]))
        assert "lifecycle" in state.answers
        assert not state.can_proceed

    def test_optional_question_can_be_skipped(self) -> None:
        state = transition(_answered_interview(), GoToQuestion(index=1))
        assert state.can_proceed
        assert transition(state, NextQuestion()).current_question_index == 2

    def test_next_at_last_question_is_ignored(self) -> None:
        state = transition(_answered_interview(), GoToQuestion(index=2))
        assert state.is_last_question
        assert transition(state, NextQuestion()) is state

    def test_previous_never_changes_answers(self) -> None:
        state = transition(_answered_interview(), GoToQuestion(index=2))
        back = transition(state, PreviousQuestion())
        assert back.current_question_index == 1
        assert back.answers == state.answers

    def test_previous_at_first_question_is_ignored(self) -> None:
        state = _interview()
        assert transition(state, PreviousQuestion()) is state

    def test_range_answer_survives_navigation(self) -> None:
        questions = [
            RangeQuestion(id="users", label="How many users?", required=True, min=1, max=1000),
            TextQuestion(id="notes", label="Anything else?"),
        ]
        state = transition(initial_state(), Submit(description=ECOMMERCE_DESCRIPTION))
        state = transition(state, QuestionsLoaded(token=state.token, questions=questions))
        state = transition(state, _answer("users", 250))

        state = transition(transition(state, NextQuestion()), PreviousQuestion())
        assert state.current_question_index == 0
        assert state.answers["users"].value == 250
        assert state.can_proceed

    def test_go_to_out_of_range_is_ignored(self) -> None:
        state = _interview()
        assert transition(state, GoToQuestion(index=3)) is state
        assert transition(state, GoToQuestion(index=-1)) is state

    def test_answer_for_unknown_question_is_ignored(self) -> None:
        state = _interview()
        assert transition(state, _answer("missing", "x")) is state

    def test_progress(self) -> None:
        state = _interview()
        assert round(state.progress, 2) == 33.33
        assert transition(_answered_interview(), GoToQuestion(index=2)).progress == 100


class TestCompleteInterview:
    def test_missing_required_answer_goes_to_error_with_answers_kept(self) -> None:
        state = transition(_interview(), _answer("lifecycle", "new"))
        failed = transition(state, CompleteInterview())
        assert failed.phase == "error"
        assert failed.failed_phase == "interview"
        assert failed.validation_errors == ["'Which systems do you integrate with?' is required"]
        assert failed.answers == state.answers

    def test_retry_after_validation_returns_to_interview(self) -> None:
        failed = transition(transition(_interview(), _answer("lifecycle", "new")), CompleteInterview())
        state = transition(failed, Retry())
        assert state.phase == "interview"
        assert state.validation_errors == []
        assert "lifecycle" in state.answers

    def test_valid_answers_start_generating(self) -> None:
        state = transition(_answered_interview(), CompleteInterview())
        assert state.phase == "generating"
        assert state.is_busy

    def test_repeated_complete_while_generating_is_ignored(self) -> None:
        generating = transition(_answered_interview(), CompleteInterview())
        assert transition(generating, CompleteInterview()) is generating


class TestGeneration:
    def test_preset_generated_enters_review(self) -> None:
        state = _review()
        assert state.phase == "review"
        assert state.review is not None
        assert state.review.current == two_activity_preset()

    def test_generation_failure_and_retry(self) -> None:
        generating = transition(_answered_interview(), CompleteInterview())
        failed = transition(generating, GenerationFailed(token=generating.token, error="model overloaded"))
        assert failed.phase == "error"
        assert transition(failed, Retry()).phase == "generating"

    def test_estimations_in_single_mode_are_ignored(self) -> None:
        generating = transition(_answered_interview(), CompleteInterview())
        event = EstimationsGenerated(token=generating.token, estimations=[estimation(r) for r in requirements(1)])
        assert transition(generating, event) is generating


class TestReviewAndSave:
    def test_edit_replaces_draft(self) -> None:
        state = _review()
        assert state.review is not None
        edited = transition(state, EditReview(draft=state.review.rename("Renamed preset")))
        assert edited.review is not None
        assert edited.review.current.name == "Renamed preset"
        assert state.review.current.name == "B2B Commerce"

    def test_save_lifecycle(self) -> None:
        saving = transition(_review(), Save())
        assert saving.phase == "saving"
        assert transition(saving, Save()) is saving
        assert transition(saving, SaveSucceeded(token=saving.token)).phase == "complete"

    def test_save_failure_can_be_retried(self) -> None:
        saving = transition(_review(), Save())
        failed = transition(saving, SaveFailed(token=saving.token, error="disk full"))
        assert failed.phase == "error"
        assert transition(failed, Retry()).phase == "saving"


class TestBulkSelection:
    def test_successful_estimations_are_selected(self) -> None:
        reqs = requirements(3)
        failed = BulkEstimation.failed(reqs[1].id, reqs[1].req_code, "timeout")
        state = _bulk_review([estimation(reqs[0]), failed, estimation(reqs[2])])
        assert state.selected_ids == ["r1", "r3"]

    def test_failed_estimation_cannot_be_selected(self) -> None:
        reqs = requirements(2)
        state = _bulk_review([estimation(reqs[0]), BulkEstimation.failed("r2", "REQ-002", "timeout")])
        assert transition(state, ToggleSelection(requirement_id="r2")) is state

    def test_toggle_keeps_estimation_order(self) -> None:
        reqs = requirements(3)
        state = _bulk_review([estimation(r) for r in reqs])
        state = transition(state, ToggleSelection(requirement_id="r1"))
        assert state.selected_ids == ["r2", "r3"]
        state = transition(state, ToggleSelection(requirement_id="r1"))
        assert state.selected_ids == ["r1", "r2", "r3"]

    def test_item_saved_tallies(self) -> None:
        reqs = requirements(2)
        saving = transition(_bulk_review([estimation(r) for r in reqs]), Save())
        state = transition(saving, ItemSaved(token=saving.token, requirement_id="r1", success=True))
        state = transition(state, ItemSaved(token=saving.token, requirement_id="r2", success=False))
        assert state.save_tally.success == 1
        assert state.save_tally.failed == 1
        assert state.save_failed_ids == ["r2"]
        assert state.save_progress == 100

    def test_save_with_empty_selection_is_ignored(self) -> None:
        state = _bulk_review([estimation(r) for r in requirements(1)])
        state = transition(state, ToggleSelection(requirement_id="r1"))
        assert transition(state, Save()) is state


class TestReset:
    def test_detach_keeps_phase_and_fences_responses(self) -> None:
        loading = transition(initial_state(), Submit(description=ECOMMERCE_DESCRIPTION))
        detached = transition(loading, Detach())
        assert detached.phase == "loading-questions"
        late = QuestionsLoaded(token=loading.token, questions=interview_questions())
        assert transition(detached, late) is detached

    def test_close_returns_fresh_idle_state(self) -> None:
        state = transition(_review(), Close())
        assert state.phase == "idle"
        assert state.review is None
        assert state.answers == {}
        assert state.token == _review().token + 1

    def test_restart_only_from_error_or_complete(self) -> None:
        review = _review()
        assert transition(review, Restart()) is review
        failed = transition(transition(_interview(), CompleteInterview()), Restart())
        assert failed.phase == "idle"

    def test_retry_outside_error_is_ignored(self) -> None:
        state = _interview()
        assert transition(state, Retry()) is state
