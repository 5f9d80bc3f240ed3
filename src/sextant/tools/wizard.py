"""ウィザード操作のMCPツール定義。

各ツール呼び出しは、ダイアログ1つ（wizard_id）に対する利用者の操作1回に相当する。
"""

from typing import Any, Literal

from fastmcp import Context, FastMCP

from sextant.models.errors import NoValidRequirementsError, SaveBlockedError, SextantError
from sextant.models.question import RequirementStub
from sextant.services.catalog import ActivityCatalog
from sextant.services.machine import WizardState
from sextant.services.registry import WizardRegistry
from sextant.services.review import MIN_ACTIVITIES_TO_SAVE
from sextant.services.scope import applicable_requirement_ids, prepare_requirements
from sextant.services.wizard import BulkWizard, PresetWizard, WizardOrchestrator
from sextant.validators.answers import check_description


def _error(e: SextantError) -> dict[str, Any]:
    return {"error": type(e).__name__, "message": str(e)}


def _interview_view(wizard: WizardOrchestrator) -> dict[str, Any]:
    state = wizard.state
    question = wizard.current_question
    answer = state.answers.get(question.id) if question is not None else None
    view: dict[str, Any] = {
        "question_count": len(state.questions),
        "current_question_index": state.current_question_index,
        "current_question": question.model_dump(mode="json") if question is not None else None,
        "current_answer": answer.value if answer is not None else None,
        "progress": wizard.progress,
        "answered_count": wizard.answered_count,
        "can_proceed": wizard.can_proceed,
        "is_first_question": wizard.is_first_question,
        "is_last_question": wizard.is_last_question,
        "required_answered": wizard.required_answered,
    }
    if isinstance(wizard, BulkWizard) and question is not None:
        view["applies_to"] = applicable_requirement_ids(question, [r.id for r in state.requirements])
    return view


def _preset_review_view(wizard: PresetWizard) -> dict[str, Any]:
    review = wizard.review
    if review is None:
        return {}
    return {
        "preset": review.current.model_dump(mode="json"),
        "total_days": review.total_days,
        "activities_by_priority": {k: [a.code for a in v] for k, v in review.grouped.items()},
        "excluded_activities": [a.code for a in review.excluded],
        "is_modified": review.is_modified,
        "can_save": wizard.can_save,
    }


def _bulk_review_view(wizard: BulkWizard) -> dict[str, Any]:
    state = wizard.state
    return {
        "scope_summary": wizard.scope_summary.model_dump(),
        "requirement_analysis": [a.model_dump() for a in state.requirement_analysis],
        "estimations": [e.model_dump(mode="json") for e in state.estimations],
        "selected_ids": list(state.selected_ids),
        "save": {
            "processed": state.save_processed,
            "total": state.save_total,
            "progress": state.save_progress,
            "success": state.save_tally.success,
            "failed": state.save_tally.failed,
            "failed_ids": list(state.save_failed_ids),
        },
    }


def state_view(wizard_id: str, wizard: WizardOrchestrator) -> dict[str, Any]:
    """ウィザードの状態をツールの戻り値に変換する。"""
    state: WizardState = wizard.state
    view: dict[str, Any] = {
        "wizard_id": wizard_id,
        "mode": state.mode,
        "phase": state.phase,
        "is_busy": state.is_busy,
        "error": state.error,
        "validation_errors": list(state.validation_errors),
        "suggested_tech_category": state.suggested_tech_category,
        "reasoning": state.reasoning,
    }
    if state.phase == "interview":
        view["interview"] = _interview_view(wizard)
    if isinstance(wizard, PresetWizard):
        view["review"] = _preset_review_view(wizard)
    elif isinstance(wizard, BulkWizard):
        view["requirements"] = [r.model_dump() for r in state.requirements]
        view["review"] = _bulk_review_view(wizard)
    return view


def register_wizard_tools(mcp: FastMCP, registry: WizardRegistry, catalog: ActivityCatalog) -> None:
    """ウィザード関連のMCPツールを登録する。"""

    def _result(wizard_id: str, accepted: bool | None = None) -> dict[str, Any]:
        view = state_view(wizard_id, registry.get(wizard_id))
        if accepted is not None:
            view["accepted"] = accepted
        return view

    # --- ライフサイクル ---

    @mcp.tool()
    async def open_wizard(mode: Literal["single", "bulk"] = "single", wizard_id: str | None = None) -> dict[str, Any]:
        """見積もりウィザードを開く。

        single は説明文から技術プリセットを作成し、bulk は複数要件をまとめて見積もります。
        閉じたウィザードの wizard_id を指定すると、同じダイアログを新しい状態で開き直します。
        返却される wizard_id を以降のツール呼び出しで使用してください。

        Args:
            mode: ウィザードのモード。
            wizard_id: 開き直すウィザードのID。
        """
        try:
            if wizard_id is None:
                wizard_id = registry.create(mode)
            else:
                registry.reopen(wizard_id)
            return _result(wizard_id)
        except SextantError as e:
            return _error(e)

    @mcp.tool()
    async def get_wizard_state(wizard_id: str) -> dict[str, Any]:
        """ウィザードの現在の状態を取得する。

        Args:
            wizard_id: ウィザードID。
        """
        try:
            return _result(wizard_id)
        except SextantError as e:
            return _error(e)

    @mcp.tool()
    async def close_wizard(wizard_id: str) -> dict[str, Any]:
        """ウィザードを閉じる。

        生成・保存中の応答はこの時点で無効になり、状態は少し遅れてリセットされます。

        Args:
            wizard_id: ウィザードID。
        """
        try:
            registry.close(wizard_id)
            return _result(wizard_id)
        except SextantError as e:
            return _error(e)

    @mcp.tool()
    async def retry_wizard(wizard_id: str) -> dict[str, Any]:
        """エラーになった処理を同じ入力でやり直す。

        Args:
            wizard_id: ウィザードID。
        """
        try:
            await registry.get(wizard_id).retry()
            return _result(wizard_id)
        except SextantError as e:
            return _error(e)

    @mcp.tool()
    async def restart_wizard(wizard_id: str) -> dict[str, Any]:
        """エラー・完了状態から最初の状態に戻す。

        Args:
            wizard_id: ウィザードID。
        """
        try:
            accepted = registry.get(wizard_id).restart()
            return _result(wizard_id, accepted)
        except SextantError as e:
            return _error(e)

    # --- 入力 ---

    @mcp.tool()
    async def submit_description(wizard_id: str, description: str, tech_category: str | None = None) -> dict[str, Any]:
        """プロジェクトの説明文を送信し、質問を生成する（singleモード）。

        説明文は20〜1000文字で指定してください。

        Args:
            wizard_id: ウィザードID。
            description: プロジェクトの説明文。
            tech_category: 技術カテゴリ（FRONTEND, BACKEND, POWER_PLATFORM, MULTI）。
        """
        try:
            wizard = registry.preset(wizard_id)
            check_description(description)
            await wizard.submit_description(description, tech_category)
            return _result(wizard_id)
        except SextantError as e:
            return _error(e)

    @mcp.tool()
    async def analyze_requirements(
        wizard_id: str,
        requirements: list[RequirementStub],
        tech_category: str | None = None,
        description: str = "",
    ) -> dict[str, Any]:
        """複数の要件を送信し、スコープ付きの質問を生成する（bulkモード）。

        説明が10文字未満の要件は対象外になります。

        Args:
            wizard_id: ウィザードID。
            requirements: 要件一覧。各要素は {"id", "req_code", "title", "description"}。
            tech_category: 技術カテゴリ。
            description: プロジェクト全体の補足説明。
        """
        try:
            wizard = registry.bulk(wizard_id)
            if not prepare_requirements(requirements):
                raise NoValidRequirementsError("No requirement has a description of at least 10 characters")
            await wizard.analyze_requirements(requirements, tech_category, description)
            return _result(wizard_id)
        except SextantError as e:
            return _error(e)

    # --- インタビュー ---

    @mcp.tool()
    async def answer_question(
        wizard_id: str,
        question_id: str,
        value: str | list[str] | int | float,
    ) -> dict[str, Any]:
        """質問に回答する。

        Args:
            wizard_id: ウィザードID。
            question_id: 質問ID。
            value: 回答値。選択式は選択肢ID（複数選択はリスト）、範囲は数値。
        """
        try:
            accepted = registry.get(wizard_id).answer(question_id, value)
            return _result(wizard_id, accepted)
        except SextantError as e:
            return _error(e)

    @mcp.tool()
    async def toggle_choice(wizard_id: str, question_id: str, option_id: str) -> dict[str, Any]:
        """選択肢を選ぶ。複数選択の質問では選択・解除を切り替える。

        選択肢ID "other" は自由記述の「その他」です。

        Args:
            wizard_id: ウィザードID。
            question_id: 質問ID。
            option_id: 選択肢ID。
        """
        try:
            accepted = registry.get(wizard_id).toggle_choice(question_id, option_id)
            return _result(wizard_id, accepted)
        except SextantError as e:
            return _error(e)

    @mcp.tool()
    async def set_other_text(wizard_id: str, question_id: str, text: str) -> dict[str, Any]:
        """「その他」の自由記述を入力する。

        Args:
            wizard_id: ウィザードID。
            question_id: 質問ID。
            text: 自由記述。
        """
        try:
            accepted = registry.get(wizard_id).set_other_text(question_id, text)
            return _result(wizard_id, accepted)
        except SextantError as e:
            return _error(e)

    @mcp.tool()
    async def next_question(wizard_id: str) -> dict[str, Any]:
        """次の質問に進む。必須質問は妥当な回答が必要です。

        Args:
            wizard_id: ウィザードID。
        """
        try:
            accepted = registry.get(wizard_id).next_question()
            return _result(wizard_id, accepted)
        except SextantError as e:
            return _error(e)

    @mcp.tool()
    async def previous_question(wizard_id: str) -> dict[str, Any]:
        """前の質問に戻る。

        Args:
            wizard_id: ウィザードID。
        """
        try:
            accepted = registry.get(wizard_id).previous_question()
            return _result(wizard_id, accepted)
        except SextantError as e:
            return _error(e)

    @mcp.tool()
    async def go_to_question(wizard_id: str, index: int) -> dict[str, Any]:
        """指定した番号（0始まり）の質問に移動する。

        Args:
            wizard_id: ウィザードID。
            index: 質問の番号。
        """
        try:
            accepted = registry.get(wizard_id).go_to_question(index)
            return _result(wizard_id, accepted)
        except SextantError as e:
            return _error(e)

    @mcp.tool()
    async def complete_interview(wizard_id: str) -> dict[str, Any]:
        """インタビューを完了し、プリセットまたは見積もりを生成する。

        回答に問題がある場合は validation_errors に内容が返ります。
        retry_wizard でインタビューに戻って修正してください。

        Args:
            wizard_id: ウィザードID。
        """
        try:
            await registry.get(wizard_id).complete_interview()
            return _result(wizard_id)
        except SextantError as e:
            return _error(e)

    # --- レビュー（singleモード） ---

    @mcp.tool()
    async def rename_preset(wizard_id: str, name: str) -> dict[str, Any]:
        """生成されたプリセットの名前を変更する（3文字以上）。

        Args:
            wizard_id: ウィザードID。
            name: 新しい名前。
        """
        try:
            registry.preset(wizard_id).rename(name)
            return _result(wizard_id)
        except SextantError as e:
            return _error(e)

    @mcp.tool()
    async def describe_preset(wizard_id: str, description: str) -> dict[str, Any]:
        """生成されたプリセットの説明を変更する（10文字以上）。

        Args:
            wizard_id: ウィザードID。
            description: 新しい説明。
        """
        try:
            registry.preset(wizard_id).redescribe(description)
            return _result(wizard_id)
        except SextantError as e:
            return _error(e)

    @mcp.tool()
    async def toggle_activity(wizard_id: str, code: str) -> dict[str, Any]:
        """プリセットのアクティビティの採用・除外を切り替える。

        Args:
            wizard_id: ウィザードID。
            code: アクティビティコード。
        """
        try:
            registry.preset(wizard_id).toggle_activity(code)
            return _result(wizard_id)
        except SextantError as e:
            return _error(e)

    @mcp.tool()
    async def add_activity(wizard_id: str, code: str) -> dict[str, Any]:
        """カタログのアクティビティをプリセットに追加する。

        利用可能なコードは sextant://catalog/activities リソースで確認できます。

        Args:
            wizard_id: ウィザードID。
            code: アクティビティコード。
        """
        try:
            wizard = registry.preset(wizard_id)
            wizard.add_activity(catalog.suggest(code))
            return _result(wizard_id)
        except SextantError as e:
            return _error(e)

    # --- レビュー（bulkモード） ---

    @mcp.tool()
    async def toggle_estimation(wizard_id: str, requirement_id: str) -> dict[str, Any]:
        """見積もりの保存対象選択を切り替える。失敗した見積もりは選択できません。

        Args:
            wizard_id: ウィザードID。
            requirement_id: 要件ID。
        """
        try:
            accepted = registry.bulk(wizard_id).toggle_selection(requirement_id)
            return _result(wizard_id, accepted)
        except SextantError as e:
            return _error(e)

    @mcp.tool()
    async def select_all_estimations(wizard_id: str) -> dict[str, Any]:
        """成功した見積もりを全て保存対象にする。

        Args:
            wizard_id: ウィザードID。
        """
        try:
            accepted = registry.bulk(wizard_id).select_all_successful()
            return _result(wizard_id, accepted)
        except SextantError as e:
            return _error(e)

    # --- 保存 ---

    @mcp.tool()
    async def save_wizard(wizard_id: str, ctx: Context) -> dict[str, Any]:
        """レビュー中の成果物を保存する。

        single はアクティビティが3件以上採用されている場合のみ保存できます。
        bulk は選択した見積もりを1件ずつ保存し、失敗があっても残りの保存を続けます。

        Args:
            wizard_id: ウィザードID。
        """
        try:
            wizard = registry.get(wizard_id)
            if isinstance(wizard, PresetWizard):
                if wizard.state.phase == "review" and not wizard.can_save:
                    raise SaveBlockedError(wizard_id, f"at least {MIN_ACTIVITIES_TO_SAVE} activities are required")
                await wizard.save()
            elif isinstance(wizard, BulkWizard):

                async def _report(state: WizardState) -> None:
                    await ctx.report_progress(progress=state.save_processed, total=state.save_total)

                await wizard.save_selected(on_progress=_report)
            return _result(wizard_id)
        except SextantError as e:
            return _error(e)
