"""Tests for keyword generation and the LLM client."""

import json

import httpx
import pytest

from dataprep_suite.config import Settings
from dataprep_suite.schemas.data_sources import DataSourceCreate
from dataprep_suite.services.data_sources import DataSourceService
from dataprep_suite.services.keywords import KeywordService, heuristic_keywords
from dataprep_suite.services.llm import ANTHROPIC_URL, OPENAI_URL, LLMClient, LLMError, extract_json


def openai_reply(content: str):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"choices": [{"message": {"content": content}}]})

    return handler


def llm(handler, **keys) -> LLMClient:
    return LLMClient(Settings(**keys), transport=httpx.MockTransport(handler))


@pytest.fixture
def sources(db, storage):
    return DataSourceService(db, storage)


@pytest.fixture
def source(sources, sample_records):
    return sources.create(DataSourceCreate(name="customer loyalty", type="json", records=sample_records))


class TestHeuristics:
    def test_columns_and_name_parts(self):
        result = heuristic_keywords("Sales_2024-report", ["id", "amount", "region", "amount"])
        assert result == {
            "keywords": ["amount", "region", "sales", "2024", "report"],
            "categories": ["data"],
            "domain": "general",
            "method": "heuristic",
        }

    def test_caps_keyword_count(self):
        columns = [f"column_{i}" for i in range(30)]
        assert len(heuristic_keywords("wide", columns)["keywords"]) == 20

    def test_extract_json(self):
        assert extract_json('```json\n{"keywords": ["a"]}\n```') == {"keywords": ["a"]}
        with pytest.raises(LLMError):
            extract_json("no json here")
        with pytest.raises(LLMError):
            extract_json("{not: valid}")


class TestLLMClient:
    def test_provider_selection(self):
        assert LLMClient(Settings(openai_api_key="a", anthropic_api_key="b")).provider == "openai"
        assert LLMClient(Settings(anthropic_api_key="b")).provider == "anthropic"
        assert LLMClient(Settings()).provider is None

    async def test_no_key(self):
        with pytest.raises(LLMError):
            await LLMClient(Settings()).complete("system", "user")

    async def test_openai_request(self):
        captured = {}

        def handler(request):
            captured["url"] = str(request.url)
            captured["auth"] = request.headers["authorization"]
            captured["body"] = json.loads(request.content)
            return openai_reply("hello")(request)

        client = llm(handler, openai_api_key="sk-test")
        assert await client.complete("system", "user", max_tokens=42) == "hello"
        assert captured["url"] == OPENAI_URL
        assert captured["auth"] == "Bearer sk-test"
        assert captured["body"]["max_tokens"] == 42
        assert [m["role"] for m in captured["body"]["messages"]] == ["system", "user"]

    async def test_anthropic_request(self):
        def handler(request):
            assert str(request.url) == ANTHROPIC_URL
            assert request.headers["x-api-key"] == "ak-test"
            body = json.loads(request.content)
            assert body["messages"][0]["content"] == "system\n\nuser"
            return httpx.Response(200, json={"content": [{"text": "hi"}]})

        assert await llm(handler, anthropic_api_key="ak-test").complete("system", "user") == "hi"

    async def test_http_error(self):
        client = llm(lambda request: httpx.Response(500), openai_api_key="sk-test")
        with pytest.raises(LLMError):
            await client.complete("system", "user")

    async def test_unexpected_body(self):
        client = llm(lambda request: httpx.Response(200, json={"choices": []}), openai_api_key="sk-test")
        with pytest.raises(LLMError):
            await client.complete("system", "user")


class TestKeywordService:
    async def test_llm_keywords_are_saved(self, sources, source):
        prompts = []

        def handler(request):
            prompts.append(json.loads(request.content)["messages"][1]["content"])
            reply = '{"keywords": ["loyalty", "customer", "rewards"], "categories": ["customer"], "domain": "retail"}'
            return openai_reply(reply)(request)

        service = KeywordService(sources, llm(handler, openai_api_key="sk-test"))
        result = await service.generate_keywords(source.id)

        assert result["method"] == "openai"
        assert result["keywords"] == ["loyalty", "customer", "rewards"]
        assert result["domain"] == "retail"
        assert sources.get_or_raise(source.id).ai_keywords == ["loyalty", "customer", "rewards"]
        assert "Data Source: customer loyalty" in prompts[0]
        assert 'email="alice@example.com"' in prompts[0]

    @pytest.mark.parametrize(
        "reply",
        ["I cannot help with that", '{"keywords": []}', '{"keywords": null}', '{"keywords": "pii"}'],
    )
    async def test_falls_back_to_heuristics(self, sources, source, reply):
        service = KeywordService(sources, llm(openai_reply(reply), openai_api_key="sk-test"))
        result = await service.analyze(source)
        assert result["method"] == "heuristic"
        assert result["keywords"][:2] == ["customer_id", "email"]

    def test_context_lists_tables(self, sources, source):
        columns = [{"name": f"col_{i}", "type": "string"} for i in range(12)]
        sources.replace_tables(source, [{"table_name": "members", "record_count": 3, "schema_info": columns}])
        sources.db.refresh(source)

        context = KeywordService(sources, LLMClient(Settings())).build_context(source)
        assert "Tables (1):" in context
        assert "- members" in context
        assert "col_9..." in context
        assert "col_10" not in context
