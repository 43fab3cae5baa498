import pytest
from pydantic import ValidationError as PydanticValidationError

from role_core.api.service import RoleRequest, handle_role_request
from role_core.config.role_models import get_role_model
from role_core.config.settings import Settings
from role_core.domain.exceptions import BackendUnavailableError, ValidationError
from role_core.domain.models import NormalizedResponse
from role_core.tools.definitions import ToolCall


class RecordingAdapter:
    """记录请求内容并按顺序回放响应的 generic 适配器。"""

    name = "recording"
    orchestration = "generic"

    def __init__(self, responses):
        self._responses = list(responses)
        self.systems = []
        self.tool_names = []
        self.results = []

    async def send_turn(self, state, tools, options):
        self.systems.append(state.system)
        self.tool_names = [t.name for t in tools]
        self.options = options
        return self._responses.pop(0)

    async def send_tool_results(self, state, tool_results):
        self.results.append(list(tool_results))
        return self._responses.pop(0)


def _settings(**kw):
    return Settings(max_tool_iterations=5, **kw)


@pytest.mark.asyncio
async def test_end_to_end_tool_round_and_inline_write(tmp_path):
    (tmp_path / "brief.md").write_text("Build a todo app", encoding="utf-8")
    final_text = (
        "Created the file.\n"
        "<file_operation>\ncommand: write_file\npath: app/todo.py\ncontent:\nTODOS = []\n</file_operation>"
    )
    adapter = RecordingAdapter([
        NormalizedResponse(
            success=True,
            tool_calls=[ToolCall(id="c1", name="read_file", arguments='{"path": "brief.md"}')],
        ),
        NormalizedResponse(success=True, content=final_text),
    ])
    seen = []

    result = await handle_role_request(
        {
            "role": "coder",
            "prompt": "Implement the todo list",
            "base_path": str(tmp_path),
            "related_files": ["brief.md"],
            "architecture": "hexagonal",
        },
        settings=_settings(),
        adapter=adapter,
        on_progress=lambda i, r: seen.append(i),
    )

    text = result["content"][0]["text"]
    assert result["content"][0]["type"] == "text"
    assert text.startswith("Created the file.\n<file_operation_result command=\"write_file\" path=\"app/todo.py\">")
    assert (tmp_path / "app" / "todo.py").read_text(encoding="utf-8") == "TODOS = []"
    assert adapter.results[0][0].output == '{"content": "Build a todo app"}'
    assert "<architecture>hexagonal</architecture>" in adapter.systems[0]
    assert '<file path="brief.md">' in adapter.systems[0]
    assert "read_file" in adapter.tool_names and "search_codebase" in adapter.tool_names
    assert adapter.options.temperature == 0.1
    assert seen == [1, 2]


@pytest.mark.asyncio
async def test_request_overwrite_flag_reaches_sandbox(tmp_path):
    (tmp_path / "a.txt").write_text("old", encoding="utf-8")
    adapter = RecordingAdapter([
        NormalizedResponse(
            success=True,
            content="<file_operation>\ncommand: write_file\npath: a.txt\ncontent:\nnew\n</file_operation>",
        )
    ])
    request = RoleRequest(role="rewriter", prompt="p", base_path=str(tmp_path), allow_file_overwrite=True)
    await handle_role_request(request, settings=_settings(), adapter=adapter)
    assert (tmp_path / "a.txt").read_text(encoding="utf-8") == "new"


@pytest.mark.asyncio
async def test_unknown_role_and_bad_request_are_rejected(tmp_path):
    with pytest.raises(ValidationError) as exc:
        await handle_role_request({"role": "wizard", "prompt": "p", "base_path": str(tmp_path)})
    assert exc.value.code == "UNKNOWN_ROLE"

    with pytest.raises(ValidationError) as exc:
        await handle_role_request({"role": "coder"})
    assert exc.value.code == "INVALID_REQUEST"


@pytest.mark.asyncio
async def test_first_turn_failure_propagates(tmp_path):
    adapter = RecordingAdapter([NormalizedResponse.failure("NETWORK_ERROR: down")])
    with pytest.raises(BackendUnavailableError):
        await handle_role_request(
            {"role": "qa", "prompt": "p", "base_path": str(tmp_path)},
            settings=_settings(),
            adapter=adapter,
        )


def test_role_model_resolution_order():
    cfg = Settings(
        default_provider="openai",
        default_max_tokens=2000,
        role_models={"analyst": {"provider": "google", "model": "gemini-pro"}},
    )
    coder = get_role_model("coder", cfg)
    assert (coder.provider, coder.temperature, coder.max_tokens) == ("openai", 0.1, 2000)
    analyst = get_role_model("analyst", cfg)
    assert (analyst.provider, analyst.model, analyst.temperature, analyst.max_tokens) == (
        "google",
        "gemini-pro",
        0.3,
        6000,
    )
    qa = get_role_model("qa", cfg)
    assert (qa.temperature, qa.model) == (cfg.default_temperature, None)


def test_settings_reject_short_api_key():
    with pytest.raises(PydanticValidationError):
        Settings(openai_api_key="short")
