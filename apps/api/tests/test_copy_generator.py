"""Model client contract and quality-gated generation tests."""

from __future__ import annotations

import json
import unittest

import httpx

from copy_engine.core.config import Settings
from copy_engine.errors import CopyGenerationError
from copy_engine.repositories.memory import InMemoryStore
from copy_engine.schemas.copy import ProductAdaptRequest, ProductInfo, RewriteRequest
from copy_engine.schemas.error import ErrorCode
from copy_engine.schemas.job import JobStatus
from copy_engine.services.copy_generator import PROVIDER_LOCAL, PROVIDER_MODEL, CopyGenerationEngine
from copy_engine.services.copy_jobs import CopyJobService
from copy_engine.services.llm import ModelError, VolcengineLlmClient, extract_versions, normalize_json_block
from copy_engine.services.task_runner import BackgroundTaskRunner

SOURCE = "今天这个做法真的很实用，尤其是你时间紧的时候，照着步骤来，效率会明显提升，马上就能看到变化。"
CLOSE_VERSIONS = [
    SOURCE.replace("马上", "立刻"),
    SOURCE.replace("明显", "显著"),
    SOURCE.replace("真的", "确实"),
]
LLM_SETTINGS = {
    "llm_api_key": "ark-key",
    "llm_model": "doubao-pro",
    "llm_base_url": "https://ark.example.com/api/v3/",
}


def _settings(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)


def _completion(versions: list[str]) -> httpx.Response:
    content = "```json\n" + json.dumps({"versions": versions}, ensure_ascii=False) + "\n```"
    return httpx.Response(200, json={"choices": [{"message": {"role": "assistant", "content": content}}]})


def _engine(settings: Settings, handler=None) -> CopyGenerationEngine:
    transport = httpx.MockTransport(handler or (lambda request: httpx.Response(404)))
    return CopyGenerationEngine(settings, VolcengineLlmClient(settings, transport=transport))


class ExtractVersionsTests(unittest.TestCase):
    def test_fenced_block_is_unwrapped(self) -> None:
        content = '说明文字\n```JSON\n{"versions": ["一", "二", "三"]}\n```'
        self.assertEqual(normalize_json_block(content), '{"versions": ["一", "二", "三"]}')
        self.assertEqual(extract_versions(content, 3), ["一", "二", "三"])

    def test_entries_are_trimmed(self) -> None:
        content = json.dumps({"versions": [" 一 ", "二", "三\n"]})
        self.assertEqual(extract_versions(content, 3), ["一", "二", "三"])

    def test_wrong_count_is_rejected(self) -> None:
        for versions in (["一", "二"], ["一", "二", "三", "四", "五"]):
            with self.subTest(count=len(versions)):
                with self.assertRaises(ModelError) as context:
                    extract_versions(json.dumps({"versions": versions}), 3)
                self.assertIs(context.exception.code, ErrorCode.INTERNAL_ERROR)
                self.assertEqual(context.exception.message, "LLM_OUTPUT_COUNT_INVALID")

    def test_whitespace_only_entry_is_rejected(self) -> None:
        with self.assertRaises(ModelError) as context:
            extract_versions(json.dumps({"versions": ["一", " ", "二"]}), 3)
        self.assertEqual(context.exception.message, "LLM_OUTPUT_SCHEMA_INVALID")

    def test_whitespace_entry_with_extras_is_not_coerced(self) -> None:
        with self.assertRaises(ModelError) as context:
            extract_versions(json.dumps({"versions": ["一", " ", "二", "三"]}), 3)
        self.assertEqual(context.exception.message, "LLM_OUTPUT_COUNT_INVALID")

    def test_malformed_payloads_are_schema_errors(self) -> None:
        for content in ("not json", '{"versions": "一"}', '{"versions": ["一", "", "三"]}', '{"items": []}'):
            with self.subTest(content=content):
                with self.assertRaises(ModelError) as context:
                    extract_versions(content, 3)
                self.assertEqual(context.exception.message, "LLM_OUTPUT_SCHEMA_INVALID")


class VolcengineLlmClientTests(unittest.IsolatedAsyncioTestCase):
    async def test_posts_chat_completion_under_base_path(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return _completion(CLOSE_VERSIONS)

        settings = _settings(**LLM_SETTINGS)
        client = VolcengineLlmClient(settings, transport=httpx.MockTransport(handler))
        versions = await client.generate_rewrite_versions(RewriteRequest(source_text=SOURCE))

        self.assertEqual(versions, CLOSE_VERSIONS)
        self.assertEqual(str(seen[0].url), "https://ark.example.com/api/v3/chat/completions")
        self.assertEqual(seen[0].headers["authorization"], "Bearer ark-key")
        body = json.loads(seen[0].content)
        self.assertEqual(body["model"], "doubao-pro")
        self.assertEqual([message["role"] for message in body["messages"]], ["system", "user"])
        self.assertIn(SOURCE, body["messages"][1]["content"])

    async def test_http_failure_is_reported_as_model_timeout(self) -> None:
        client = VolcengineLlmClient(
            _settings(**LLM_SETTINGS),
            transport=httpx.MockTransport(lambda request: httpx.Response(500, text="overloaded")),
        )
        with self.assertRaises(ModelError) as context:
            await client.generate_rewrite_versions(RewriteRequest(source_text=SOURCE))
        self.assertIs(context.exception.code, ErrorCode.MODEL_TIMEOUT)
        self.assertEqual(context.exception.message, "VOLCENGINE_LLM_HTTP_500")

    async def test_empty_content_is_reported_as_model_timeout(self) -> None:
        client = VolcengineLlmClient(
            _settings(**LLM_SETTINGS),
            transport=httpx.MockTransport(lambda request: httpx.Response(200, json={"choices": []})),
        )
        with self.assertRaises(ModelError) as context:
            await client.generate_rewrite_versions(RewriteRequest(source_text=SOURCE))
        self.assertEqual(context.exception.message, "VOLCENGINE_LLM_EMPTY_CONTENT")

    async def test_unconfigured_client_refuses_to_call(self) -> None:
        client = VolcengineLlmClient(_settings(llm_api_key="ark-key"))
        self.assertFalse(client.configured)
        with self.assertRaises(ModelError) as context:
            await client.generate_rewrite_versions(RewriteRequest(source_text=SOURCE))
        self.assertIs(context.exception.code, ErrorCode.INTERNAL_ERROR)


class CopyGenerationEngineTests(unittest.IsolatedAsyncioTestCase):
    async def test_model_drafts_that_pass_are_used_on_first_attempt(self) -> None:
        engine = _engine(_settings(**LLM_SETTINGS), lambda request: _completion(CLOSE_VERSIONS))
        output = await engine.generate_rewrite(RewriteRequest(source_text=SOURCE))

        self.assertEqual(output.provider, PROVIDER_MODEL)
        self.assertEqual(output.attempts, 1)
        self.assertEqual(output.versions, CLOSE_VERSIONS)
        self.assertTrue(output.qc_report.overall_passed)

    async def test_without_model_falls_back_to_local_generation(self) -> None:
        output = await _engine(_settings()).generate_rewrite(RewriteRequest(source_text=SOURCE))

        self.assertEqual(output.provider, PROVIDER_LOCAL)
        self.assertEqual(len(output.versions), 3)
        self.assertEqual(len(set(output.versions)), 3)
        self.assertTrue(output.qc_report.overall_passed)
        self.assertEqual(output.qc_report.thresholds.min_style_similarity, 0.82)

    async def test_model_errors_fall_back_to_local_generation(self) -> None:
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return httpx.Response(503)

        output = await _engine(_settings(**LLM_SETTINGS), handler).generate_rewrite(RewriteRequest(source_text=SOURCE))
        self.assertEqual(output.provider, PROVIDER_LOCAL)
        self.assertTrue(output.qc_report.overall_passed)
        self.assertGreaterEqual(calls, 1)

    async def test_gate_rejection_raises_qc_failed_with_report(self) -> None:
        engine = _engine(_settings(style_similarity_threshold=1.0, max_regenerate_count=0))
        with self.assertRaises(CopyGenerationError) as context:
            await engine.generate_rewrite(RewriteRequest(source_text=SOURCE))

        error = context.exception
        self.assertIs(error.code, ErrorCode.QC_FAILED)
        self.assertTrue(error.message.startswith("QC_FAILED:"))
        self.assertIsNotNone(error.qc_report)
        self.assertFalse(error.qc_report.overall_passed)
        self.assertIn('"overallPassed":false', error.message)

    async def test_model_timeout_takes_precedence_when_gate_also_fails(self) -> None:
        engine = _engine(
            _settings(style_similarity_threshold=1.0, max_regenerate_count=1, **LLM_SETTINGS),
            lambda request: httpx.Response(500),
        )
        with self.assertRaises(CopyGenerationError) as context:
            await engine.generate_rewrite(RewriteRequest(source_text=SOURCE))
        self.assertIs(context.exception.code, ErrorCode.MODEL_TIMEOUT)
        self.assertEqual(context.exception.message, "MODEL_TIMEOUT:VOLCENGINE_LLM_HTTP_500")

    async def test_product_drafts_are_scrubbed_of_forbidden_words(self) -> None:
        drafts = [
            f"最强甘蔗清甜，马蹄清香，{SOURCE}",
            f"马蹄清香，零添加，{SOURCE}",
            f"零添加，甘蔗清甜，{SOURCE}",
        ]
        prompts: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            prompts.append(json.loads(request.content)["messages"][1]["content"])
            return _completion(drafts)

        request = ProductAdaptRequest(
            source_text=SOURCE,
            product_info=ProductInfo(
                product_name="清润果汁",
                category="饮品",
                selling_points=["甘蔗清甜", "马蹄清香", "零添加"],
                target_audience="爱吃火锅的人",
                cta="点击下单",
                forbidden_words=["最强"],
            ),
        )
        engine = _engine(_settings(style_similarity_threshold=0, **LLM_SETTINGS), handler)
        output = await engine.generate_product(request)

        self.assertEqual(output.provider, PROVIDER_MODEL)
        self.assertTrue(output.qc_report.all_selling_points_covered)
        self.assertTrue(output.qc_report.overall_passed)
        for version in output.versions:
            self.assertNotIn("最强", version)
        self.assertIn("产品名：清润果汁", prompts[0])
        self.assertIn("禁用词：最强", prompts[0])


class CopyJobServiceTests(unittest.IsolatedAsyncioTestCase):
    async def test_job_is_queued_until_runner_starts_it(self) -> None:
        store = InMemoryStore()
        runner = BackgroundTaskRunner()
        service = CopyJobService(store, runner, _engine(_settings()))

        created = service.create_rewrite_job(RewriteRequest(source_text=SOURCE))
        self.assertIs(store.get_job(created.job_id).status, JobStatus.QUEUED)
        self.assertIs(service.get_copy_job(created.job_id).status, JobStatus.QUEUED)

        await runner.drain()
        result = service.get_copy_job(created.job_id)
        self.assertIs(result.status, JobStatus.SUCCEEDED)
        self.assertEqual(len(result.versions), 3)
        self.assertEqual(runner.pending, 0)


if __name__ == "__main__":
    unittest.main()
