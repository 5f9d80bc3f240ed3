"""ウィザード操作をガイドするMCPプロンプト定義。"""

from fastmcp import FastMCP


def register_workflow_prompts(mcp: FastMCP) -> None:
    """ワークフロー系のMCPプロンプトを登録する。"""

    def _interview_phase() -> str:
        return (
            "## インタビュー\n\n"
            "1. `get_wizard_state` の `interview.current_question` を利用者に提示してください。\n"
            "2. 回答は `answer_question`、選択肢の操作は `toggle_choice`、"
            "「その他」の自由記述は `set_other_text` で入力してください。\n"
            "3. `next_question` / `previous_question` / `go_to_question` で質問間を移動できます。\n"
            "4. 全ての必須質問に回答したら `complete_interview` を呼び出してください。\n"
            "5. `validation_errors` が返った場合は、`retry_wizard` でインタビューに戻って修正してください。\n\n"
        )

    def _notes() -> str:
        return (
            "## 注意事項\n\n"
            "- **wizard_id は以降の全ての操作で必要です。利用者にも明示してください。**\n"
            "- `phase` が `error` の場合は `error` の内容を伝え、`retry_wizard` か "
            "`restart_wizard`、または `close_wizard` を提案してください。\n"
            "- **インタビューは必ずチャット内の対話で行ってください。HTMLフォームを生成してはいけません。**\n"
        )

    @mcp.prompt()
    async def start_preset_wizard() -> str:
        """説明文から技術プリセットを作成するワークフロー。"""
        return (
            "# 技術プリセット作成ワークフロー\n\n"
            "## 開始\n\n"
            "1. `open_wizard` ツールを mode=\"single\" で呼び出してください。\n"
            "2. 利用者にプロジェクトの説明（20〜1000文字）を尋ね、`submit_description` で送信してください。\n\n"
            + _interview_phase()
            + "## レビュー\n\n"
            "1. 生成されたプリセット（名前、説明、アクティビティ、合計日数）を提示してください。\n"
            "2. 利用者の指示に応じて `rename_preset`、`describe_preset`、`toggle_activity`、"
            "`add_activity` で編集してください。\n"
            "3. アクティビティが3件以上採用されていれば `save_wizard` で保存できます。\n\n"
            + _notes()
        )

    @mcp.prompt()
    async def start_bulk_interview() -> str:
        """複数要件をまとめて見積もるワークフロー。"""
        return (
            "# 一括見積もりワークフロー\n\n"
            "## 開始\n\n"
            "1. `open_wizard` ツールを mode=\"bulk\" で呼び出してください。\n"
            "2. 要件一覧（id, req_code, title, description）を `analyze_requirements` で送信してください。\n"
            "3. 質問の `scope` は回答が適用される要件の範囲です（global は全要件）。"
            "質問ごとに対象の要件を利用者に伝えてください。\n\n"
            + _interview_phase()
            + "## レビュー\n\n"
            "1. 要件ごとの見積もり（アクティビティ、合計日数）を提示してください。"
            "失敗した見積もりはエラー内容とともに示してください。\n"
            "2. 保存対象は `toggle_estimation`、`select_all_estimations` で選択してください。\n"
            "3. `save_wizard` で選択した見積もりを保存し、成功・失敗件数を報告してください。\n\n"
            + _notes()
        )
