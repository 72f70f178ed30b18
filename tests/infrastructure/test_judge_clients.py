"""
judgeクライアントのテスト

RetryMixin._with_retry() のリトライ動作、各クライアントのレスポンス変換、
create_client() のファクトリ分岐をテストする。
"""

import pytest
from types import SimpleNamespace
from unittest.mock import patch, MagicMock

from agent_pattern_eval.domain.enums import JudgeModel
from agent_pattern_eval.domain.errors import InputValidationError
from agent_pattern_eval.domain.value_objects import JudgeCallOptions
from agent_pattern_eval.harness_config import HarnessConfig, LocalModelConfig
from agent_pattern_eval.infrastructure.judge_clients.base import RetryMixin
from agent_pattern_eval.infrastructure.judge_clients.claude import ClaudeClient
from agent_pattern_eval.infrastructure.judge_clients.factory import create_client
from agent_pattern_eval.infrastructure.judge_clients.openai_client import OpenAIClient
from agent_pattern_eval.infrastructure.judge_clients.vertex_ai import VertexAIClient


class TestRetryMixin:
    """RetryMixin._with_retry() のテスト"""

    def _make_mixin(self, max_retries=3):
        mixin = RetryMixin()
        mixin.max_retries = max_retries
        return mixin

    @patch("agent_pattern_eval.infrastructure.judge_clients.base.time.sleep")
    def test_success_on_first_attempt(self, mock_sleep):
        """初回で成功する場合、リトライなしで値を返す"""
        mixin = self._make_mixin()
        fn = MagicMock(return_value="ok")

        assert mixin._with_retry(fn) == "ok"
        fn.assert_called_once()
        mock_sleep.assert_not_called()

    @patch("agent_pattern_eval.infrastructure.judge_clients.base.time.sleep")
    def test_success_after_two_failures(self, mock_sleep):
        """2回失敗後、3回目で成功する場合"""
        mixin = self._make_mixin(max_retries=3)
        fn = MagicMock(side_effect=[ValueError("1"), ValueError("2"), "ok"])

        assert mixin._with_retry(fn) == "ok"
        assert fn.call_count == 3
        # 指数バックオフ: sleep(1), sleep(2)
        assert mock_sleep.call_count == 2
        mock_sleep.assert_any_call(1)
        mock_sleep.assert_any_call(2)

    @patch("agent_pattern_eval.infrastructure.judge_clients.base.time.sleep")
    def test_raises_after_all_retries_exhausted(self, mock_sleep):
        """全リトライ失敗時、最後の例外をraiseする"""
        mixin = self._make_mixin(max_retries=3)
        fn = MagicMock(side_effect=[ValueError("1"), ValueError("2"), ValueError("final")])

        with pytest.raises(ValueError, match="final"):
            mixin._with_retry(fn)
        assert fn.call_count == 3

    def test_max_retries_zero_raises_value_error(self):
        """max_retries=0 の場合、ValueError を即座にraiseする"""
        mixin = self._make_mixin(max_retries=0)
        fn = MagicMock(return_value="ok")

        with pytest.raises(ValueError, match="at least one attempt"):
            mixin._with_retry(fn)
        fn.assert_not_called()

    @patch("agent_pattern_eval.infrastructure.judge_clients.base.time.sleep")
    def test_call_options_override_attempts(self, mock_sleep):
        """options.max_retries は初回以降のリトライ回数として client 設定を上書きする"""
        mixin = self._make_mixin(max_retries=3)
        fn = MagicMock(side_effect=ValueError("down"))

        with pytest.raises(ValueError, match="down"):
            mixin._with_retry(fn, options=JudgeCallOptions(max_retries=0))
        fn.assert_called_once()
        mock_sleep.assert_not_called()

        fn.reset_mock()
        with pytest.raises(ValueError):
            mixin._with_retry(fn, options=JudgeCallOptions(max_retries=4))
        assert fn.call_count == 5

    def test_options_without_retries_keep_client_setting(self):
        mixin = self._make_mixin(max_retries=2)
        assert mixin._attempts(JudgeCallOptions(temperature=0.5)) == 2
        assert mixin._attempts(None) == 2

    @patch("agent_pattern_eval.infrastructure.judge_clients.base.time.sleep")
    def test_retryable_exceptions_filter(self, mock_sleep):
        """retryable_exceptions に含まれない例外は即座にraiseされる"""
        mixin = self._make_mixin(max_retries=3)
        fn = MagicMock(side_effect=TypeError("not retryable"))

        with pytest.raises(TypeError, match="not retryable"):
            mixin._with_retry(fn, retryable_exceptions=(ValueError,))
        fn.assert_called_once()
        mock_sleep.assert_not_called()


# ===========================================================================
# クライアントのレスポンス変換
# ===========================================================================


class TestClaudeClient:
    def test_requires_api_key(self, monkeypatch):
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
        with pytest.raises(ValueError, match="ANTHROPIC_API_KEY"):
            ClaudeClient("claude-3-haiku-20240307")

    def test_generate(self):
        client = ClaudeClient("claude-3-haiku-20240307", api_key="test-key", temperature=0.1)
        client.client = MagicMock()
        client.client.messages.create.return_value = SimpleNamespace(
            content=[SimpleNamespace(text='  {"score": 0.8}\n')],
            usage=SimpleNamespace(input_tokens=20, output_tokens=6),
        )

        response = client.generate("judge this")

        assert response.output == '{"score": 0.8}'
        assert response.model_name == "claude-3-haiku-20240307"
        assert (response.input_tokens, response.output_tokens) == (20, 6)
        kwargs = client.client.messages.create.call_args.kwargs
        assert kwargs["temperature"] == 0.1
        assert kwargs["messages"] == [{"role": "user", "content": "judge this"}]

        client.generate("judge this", JudgeCallOptions(temperature=0.7))
        assert client.client.messages.create.call_args.kwargs["temperature"] == 0.7


class TestOpenAIClient:
    def test_requires_api_key(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        with pytest.raises(ValueError, match="OPENAI_API_KEY"):
            OpenAIClient("gpt-4o")

    def test_generate_uses_api_model_name(self):
        client = OpenAIClient("local-vllm", api_key="k", base_url="http://localhost:8000/v1",
                              api_model_name="qwen2.5-7b")
        client.client = MagicMock()
        client.client.chat.completions.create.return_value = SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content="0.7"))],
            usage=None,
        )

        response = client.generate("judge this")

        assert response.output == "0.7"
        assert response.model_name == "local-vllm"
        assert response.input_tokens == 0
        assert client.client.chat.completions.create.call_args.kwargs["model"] == "qwen2.5-7b"


@patch("agent_pattern_eval.infrastructure.judge_clients.vertex_ai.genai.Client")
class TestVertexAIClient:
    def test_requires_project(self, mock_genai, monkeypatch):
        monkeypatch.delenv("GCP_PROJECT_ID", raising=False)
        with pytest.raises(ValueError, match="GCP_PROJECT_ID"):
            VertexAIClient("gemini-2.5-pro-preview-06-05")

    def test_generate(self, mock_genai, monkeypatch):
        monkeypatch.delenv("GCP_LOCATION", raising=False)
        client = VertexAIClient("gemini-2.5-pro-preview-06-05", project_id="test-project", timeout_seconds=10)
        assert client.location == "global"
        assert mock_genai.call_args.kwargs["project"] == "test-project"

        client.client.models.generate_content.return_value = SimpleNamespace(
            text="Score: 0.9",
            usage_metadata=SimpleNamespace(prompt_token_count=15, candidates_token_count=4),
        )
        response = client.generate("judge this")

        assert response.output == "Score: 0.9"
        assert (response.input_tokens, response.output_tokens) == (15, 4)
        assert client.client.models.generate_content.call_args.kwargs["config"].temperature == 0.0

        client.generate("judge this", JudgeCallOptions(temperature=0.6))
        assert client.client.models.generate_content.call_args.kwargs["config"].temperature == 0.6


# ===========================================================================
# create_client()
# ===========================================================================


class TestCreateClient:
    """create_client() ファクトリのテスト"""

    @patch("agent_pattern_eval.infrastructure.judge_clients.vertex_ai.genai.Client")
    @patch.dict("os.environ", {"GCP_PROJECT_ID": "test-project"})
    def test_gemini_model_returns_vertex_ai_client(self, mock_genai):
        """geminiモデルの場合、VertexAIClientを返す"""
        client = create_client(JudgeModel.GEMINI_2_5_FLASH, HarnessConfig())
        assert isinstance(client, VertexAIClient)

    @patch.dict("os.environ", {"ANTHROPIC_API_KEY": "test-key"})
    def test_claude_model_returns_claude_client(self):
        """claudeモデルの場合、ClaudeClientを返す"""
        client = create_client("claude-3-5-sonnet-20241022", HarnessConfig())
        assert isinstance(client, ClaudeClient)
        assert client.max_retries == HarnessConfig().judge.max_retries

    @patch.dict("os.environ", {"OPENAI_API_KEY": "test-key"})
    def test_gpt_model_returns_openai_client(self):
        client = create_client("gpt-4o-mini", HarnessConfig())
        assert isinstance(client, OpenAIClient)
        assert client.base_url is None

    def test_local_models_use_openai_compatible_endpoint(self):
        """ローカルモデルはOpenAI互換エンドポイントを使う"""
        config = HarnessConfig(local_models=LocalModelConfig(
            vllm_base_url="http://vllm:8000/v1", vllm_model="qwen",
            ollama_base_url="http://ollama:11434/v1", ollama_model="llama3",
        ))

        vllm = create_client("local-vllm", config)
        ollama = create_client(JudgeModel.LOCAL_OLLAMA, config)

        assert isinstance(vllm, OpenAIClient)
        assert (vllm.base_url, vllm.api_model_name, vllm.model_name) == ("http://vllm:8000/v1", "qwen", "local-vllm")
        assert (ollama.base_url, ollama.api_model_name) == ("http://ollama:11434/v1", "llama3")

    def test_unknown_model(self):
        with pytest.raises(InputValidationError):
            create_client("gpt-2", HarnessConfig())
