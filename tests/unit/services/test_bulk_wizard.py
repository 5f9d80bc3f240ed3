"""BulkWizardのユニットテスト。"""

from fakes import FakeGenerator, RecordingPersister, estimation, interview_questions, requirements

from sextant.models.artifact import BulkEstimation
from sextant.models.generation import BulkEstimationResult, QuestionGenerationResult, RequirementAnalysis
from sextant.models.question import RequirementStub, TextQuestion
from sextant.services.machine import WizardState
from sextant.services.wizard import BulkWizard


async def _review(wizard: BulkWizard, count: int = 3) -> None:
    await wizard.analyze_requirements(requirements(count), tech_category="BACKEND")
    wizard.answer("lifecycle", "existing")
    wizard.answer("integrations", ["sap"])
    await wizard.complete_interview()
    assert wizard.state.phase == "review"


class TestAnalyzeRequirements:
    async def test_short_requirements_are_filtered(self, bulk_wizard: BulkWizard, generator: FakeGenerator) -> None:
        reqs = [*requirements(2), RequirementStub(id="r9", req_code="REQ-009", description="tbd")]
        state = await bulk_wizard.analyze_requirements(reqs)
        assert state.phase == "interview"
        assert [r.id for r in generator.question_requests[0].requirements] == ["r1", "r2"]

    async def test_no_usable_requirement_stays_idle(self, bulk_wizard: BulkWizard, generator: FakeGenerator) -> None:
        state = await bulk_wizard.analyze_requirements(
            [RequirementStub(id="r1", req_code="REQ-001", description="tbd")]
        )
        assert state.phase == "idle"
        assert state.error is not None
        assert generator.question_requests == []

    async def test_question_scopes_are_reconciled(self, bulk_wizard: BulkWizard, generator: FakeGenerator) -> None:
        generator.question_result = QuestionGenerationResult(
            success=True,
            questions=[
                *interview_questions(),
                TextQuestion(id="db", label="Database?", scope="specific", affected_requirement_ids=["r2"]),
                TextQuestion(id="gone", label="Legacy?", scope="specific", affected_requirement_ids=["r42"]),
            ],
        )
        await bulk_wizard.analyze_requirements(requirements(3))
        assert [q.id for q in bulk_wizard.state.questions] == ["lifecycle", "notes", "integrations", "db"]

        summary = bulk_wizard.scope_summary
        assert summary.total_requirements == 3
        assert summary.global_questions == 3
        assert summary.specific_questions == 1

    async def test_requirement_analysis_is_linked_to_requirements(
        self, bulk_wizard: BulkWizard, generator: FakeGenerator
    ) -> None:
        generator.question_result = QuestionGenerationResult(
            success=True,
            questions=[
                *interview_questions(),
                TextQuestion(id="db", label="Database?", scope="specific", affected_requirement_ids=["r2"]),
            ],
            requirement_analysis=[
                RequirementAnalysis(req_code="REQ-002", complexity="HIGH", ambiguity_score=0.6, topics=["sap"]),
                RequirementAnalysis(req_code="REQ-042", complexity="LOW"),
                RequirementAnalysis(requirement_id="r1", req_code="REQ-001"),
            ],
        )
        await bulk_wizard.analyze_requirements(requirements(3))

        analysis = bulk_wizard.state.requirement_analysis
        assert [a.requirement_id for a in analysis] == ["r1", "r2"]
        assert analysis[0].relevant_question_ids == ["lifecycle", "notes", "integrations"]
        assert analysis[1].complexity == "HIGH"
        assert analysis[1].relevant_question_ids == ["lifecycle", "notes", "integrations", "db"]


class TestGeneration:
    async def test_answers_carry_scope(self, bulk_wizard: BulkWizard, generator: FakeGenerator) -> None:
        await _review(bulk_wizard)
        request = generator.estimation_requests[0]
        assert request.tech_category == "BACKEND"
        assert request.answers["lifecycle"].scope == "global"
        assert request.answers["integrations"].value == ["sap"]

    async def test_missing_and_failed_estimations_are_not_selectable(
        self, bulk_wizard: BulkWizard, generator: FakeGenerator
    ) -> None:
        reqs = requirements(3)
        generator.estimation_result = BulkEstimationResult(
            success=True,
            estimations=[estimation(reqs[0]), BulkEstimation.failed("r2", "REQ-002", "timeout")],
        )
        await _review(bulk_wizard)
        state = bulk_wizard.state
        assert [e.requirement_id for e in state.estimations] == ["r1", "r2", "r3"]
        assert state.selected_ids == ["r1"]
        assert not bulk_wizard.toggle_selection("r2")
        assert not bulk_wizard.toggle_selection("r3")

    async def test_empty_result_is_a_generation_error(self, bulk_wizard: BulkWizard, generator: FakeGenerator) -> None:
        generator.estimation_result = BulkEstimationResult(success=True, estimations=[])
        await bulk_wizard.analyze_requirements(requirements(2))
        bulk_wizard.answer("lifecycle", "new")
        bulk_wizard.answer("integrations", ["crm"])
        state = await bulk_wizard.complete_interview()
        assert state.phase == "error"
        assert state.failed_phase == "generating"


class TestSelection:
    async def test_clear_and_select_all(self, bulk_wizard: BulkWizard) -> None:
        await _review(bulk_wizard)
        assert bulk_wizard.clear_selection()
        assert bulk_wizard.selected_estimations == []
        assert bulk_wizard.select_all_successful()
        assert [e.requirement_id for e in bulk_wizard.selected_estimations] == ["r1", "r2", "r3"]

    async def test_save_without_selection_is_ignored(
        self, bulk_wizard: BulkWizard, persister: RecordingPersister
    ) -> None:
        await _review(bulk_wizard)
        bulk_wizard.clear_selection()
        state = await bulk_wizard.save_selected()
        assert state.phase == "review"
        assert persister.saved == []


class TestSaveSelected:
    async def test_one_failure_does_not_stop_the_rest(
        self, bulk_wizard: BulkWizard, persister: RecordingPersister
    ) -> None:
        await _review(bulk_wizard, count=5)
        persister.fail_ids = {"r3"}
        progress: list[float] = []

        async def on_progress(state: WizardState) -> None:
            progress.append(state.save_progress)

        state = await bulk_wizard.save_selected(on_progress)
        assert state.phase == "complete"
        assert state.save_tally.success == 4
        assert state.save_tally.failed == 1
        assert state.save_failed_ids == ["r3"]
        assert state.save_progress == 100
        assert [round(p) for p in progress] == [20, 40, 60, 80, 100]
        assert persister.saved == ["r1", "r2", "r4", "r5"]

    async def test_rejected_result_counts_as_failure(
        self, bulk_wizard: BulkWizard, persister: RecordingPersister
    ) -> None:
        await _review(bulk_wizard, count=2)
        persister.reject_ids = {"r1"}
        state = await bulk_wizard.save_selected()
        assert state.save_tally.success == 1
        assert state.save_failed_ids == ["r1"]

    async def test_closing_mid_save_stops_remaining_items(
        self, bulk_wizard: BulkWizard, persister: RecordingPersister
    ) -> None:
        await _review(bulk_wizard, count=3)

        async def close_after_first(state: WizardState) -> None:
            bulk_wizard.close(delay=0)

        state = await bulk_wizard.save_selected(close_after_first)
        assert state.phase == "idle"
        assert persister.saved == ["r1"]

    async def test_failing_progress_callback_does_not_stop_save(
        self, bulk_wizard: BulkWizard, persister: RecordingPersister
    ) -> None:
        await _review(bulk_wizard, count=3)

        async def disconnected(state: WizardState) -> None:
            raise RuntimeError("client went away")

        state = await bulk_wizard.save_selected(disconnected)
        assert state.phase == "complete"
        assert state.save_tally.success == 3
        assert persister.saved == ["r1", "r2", "r3"]
        assert bulk_wizard.restart()
