"""単一モードのウィザードフローのMCPプロトコル経由統合テスト。"""

import json

import pytest
from fakes import ECOMMERCE_DESCRIPTION, FakeGenerator, two_activity_preset
from fastmcp import Client

from sextant.config import ServerConfig
from sextant.prompts.generation import PRESET_SYSTEM_PROMPT, QUESTION_SYSTEM_PROMPT
from sextant.server import create_server


@pytest.fixture
def mcp_server(server_config: ServerConfig) -> object:
    """テスト用MCPサーバー。"""
    return create_server(server_config, adapter=FakeGenerator())


def parse_tool_result(result: object) -> dict:
    """CallToolResultからJSONデータを抽出する。"""
    content = result.content  # type: ignore[union-attr]
    assert len(content) > 0
    return json.loads(content[0].text)  # type: ignore[union-attr]


async def _open_interview(client: Client) -> str:  # type: ignore[type-arg]
    data = parse_tool_result(await client.call_tool("open_wizard", {"mode": "single"}))
    wizard_id = data["wizard_id"]
    data = parse_tool_result(
        await client.call_tool(
            "submit_description",
            {"wizard_id": wizard_id, "description": ECOMMERCE_DESCRIPTION, "tech_category": "BACKEND"},
        )
    )
    assert data["phase"] == "interview"
    return wizard_id


class TestServerSurface:
    async def test_tools_are_registered(self, mcp_server: object) -> None:
        async with Client(mcp_server) as client:  # type: ignore[arg-type]
            names = {tool.name for tool in await client.list_tools()}
        assert {
            "open_wizard",
            "submit_description",
            "analyze_requirements",
            "answer_question",
            "complete_interview",
            "add_activity",
            "save_wizard",
            "close_wizard",
        } <= names

    async def test_catalog_resource(self, mcp_server: object) -> None:
        async with Client(mcp_server) as client:  # type: ignore[arg-type]
            contents = await client.read_resource("sextant://catalog/activities")
        assert "BE_API" in contents[0].text  # type: ignore[union-attr]

    async def test_workflow_prompts(self, mcp_server: object) -> None:
        async with Client(mcp_server) as client:  # type: ignore[arg-type]
            names = {prompt.name for prompt in await client.list_prompts()}
        assert {"start_preset_wizard", "start_bulk_interview"} <= names


class TestPresetWizardViaMCP:
    async def test_full_flow_via_mcp(self, mcp_server: object) -> None:
        async with Client(mcp_server) as client:  # type: ignore[arg-type]
            wizard_id = await _open_interview(client)

            # 1. 必須の最後の質問が未回答のままでは完了できない
            await client.call_tool(
                "answer_question", {"wizard_id": wizard_id, "question_id": "lifecycle", "value": "new"}
            )
            data = parse_tool_result(await client.call_tool("complete_interview", {"wizard_id": wizard_id}))
            assert data["phase"] == "error"
            assert data["validation_errors"] == ["'Which systems do you integrate with?' is required"]

            # 2. インタビューに戻って回答を補う
            data = parse_tool_result(await client.call_tool("retry_wizard", {"wizard_id": wizard_id}))
            assert data["phase"] == "interview"
            await client.call_tool(
                "toggle_choice", {"wizard_id": wizard_id, "question_id": "integrations", "option_id": "sap"}
            )
            data = parse_tool_result(await client.call_tool("complete_interview", {"wizard_id": wizard_id}))
            assert data["phase"] == "review"
            assert data["review"]["can_save"] is False

            # 3. 2件のままでは保存できない
            data = parse_tool_result(await client.call_tool("save_wizard", {"wizard_id": wizard_id}))
            assert data["error"] == "SaveBlockedError"

            # 4. カタログから3件目を追加して保存
            data = parse_tool_result(
                await client.call_tool("add_activity", {"wizard_id": wizard_id, "code": "TST_UNIT"})
            )
            assert data["review"]["can_save"] is True
            data = parse_tool_result(await client.call_tool("save_wizard", {"wizard_id": wizard_id}))
            assert data["phase"] == "complete"

            # 5. 保存済みのプリセットを参照
            data = parse_tool_result(await client.call_tool("list_saved_presets", {}))
            assert data["preset_ids"] == ["b2b-commerce"]
            data = parse_tool_result(await client.call_tool("get_saved_preset", {"preset_id": "b2b-commerce"}))
            assert [a["code"] for a in data["preset"]["activities"]] == ["BE_API", "BE_INTEGRATION", "TST_UNIT"]

    async def test_short_description_is_rejected(self, mcp_server: object) -> None:
        async with Client(mcp_server) as client:  # type: ignore[arg-type]
            data = parse_tool_result(await client.call_tool("open_wizard", {"mode": "single"}))
            data = parse_tool_result(
                await client.call_tool("submit_description", {"wizard_id": data["wizard_id"], "description": "short"})
            )
            assert data["error"] == "InvalidDescriptionError"

    async def test_unknown_wizard(self, mcp_server: object) -> None:
        async with Client(mcp_server) as client:  # type: ignore[arg-type]
            data = parse_tool_result(await client.call_tool("get_wizard_state", {"wizard_id": "missing"}))
            assert data["error"] == "SessionNotFoundError"

    async def test_review_edit_outside_review_is_an_error(self, mcp_server: object) -> None:
        async with Client(mcp_server) as client:  # type: ignore[arg-type]
            wizard_id = await _open_interview(client)
            data = parse_tool_result(await client.call_tool("rename_preset", {"wizard_id": wizard_id, "name": "X"}))
            assert data["error"] == "ReviewEditError"

    async def test_close_and_reopen(self, mcp_server: object) -> None:
        async with Client(mcp_server) as client:  # type: ignore[arg-type]
            wizard_id = await _open_interview(client)
            data = parse_tool_result(await client.call_tool("close_wizard", {"wizard_id": wizard_id}))
            assert data["phase"] == "idle"

            data = parse_tool_result(await client.call_tool("open_wizard", {"wizard_id": wizard_id}))
            assert data["wizard_id"] == wizard_id
            assert data["phase"] == "idle"


class TestSamplingViaMCP:
    async def test_generation_uses_client_sampling(self, server_config: ServerConfig) -> None:
        """生成アダプター未指定時はクライアントのサンプリングで質問とプリセットを生成する。"""
        questions = {
            "questions": [
                {
                    "id": "lifecycle",
                    "type": "single-choice",
                    "question": "Is this a new project?",
                    "required": True,
                    "options": [{"id": "new", "label": "New"}, {"id": "existing", "label": "Existing"}],
                }
            ],
            "suggested_tech_category": "BACKEND",
        }
        preset = {"preset": two_activity_preset().model_dump(mode="json")}

        async def sampling_handler(messages, params, context):  # type: ignore[no-untyped-def]
            if params.systemPrompt == QUESTION_SYSTEM_PROMPT:
                return json.dumps(questions)
            assert params.systemPrompt == PRESET_SYSTEM_PROMPT
            return f"```json\n{json.dumps(preset)}\n```"

        server = create_server(server_config)
        async with Client(server, sampling_handler=sampling_handler) as client:
            data = parse_tool_result(await client.call_tool("open_wizard", {"mode": "single"}))
            wizard_id = data["wizard_id"]
            data = parse_tool_result(
                await client.call_tool(
                    "submit_description", {"wizard_id": wizard_id, "description": ECOMMERCE_DESCRIPTION}
                )
            )
            assert data["phase"] == "interview"
            assert data["suggested_tech_category"] == "BACKEND"

            await client.call_tool(
                "answer_question", {"wizard_id": wizard_id, "question_id": "lifecycle", "value": "new"}
            )
            data = parse_tool_result(await client.call_tool("complete_interview", {"wizard_id": wizard_id}))
            assert data["phase"] == "review"
            assert [a["code"] for a in data["review"]["preset"]["activities"]] == ["BE_API", "BE_INTEGRATION"]
