import asyncio
import json
from types import SimpleNamespace

import httpx
import pytest

from wordrelay.errors import ConfigurationError, RequestError
from wordrelay.providers import (
    EchoTranslationProvider,
    OpenAITranslationProvider,
    YandexTranslationProvider,
    build_provider,
    resolve_credential,
)


def yandex_provider(handler, auth="api-key-value"):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return YandexTranslationProvider(auth=auth, client=client)


def translate(provider, texts):
    return asyncio.run(
        provider.translate(
            texts,
            source_language="ru",
            target_language="en",
            folder_id="folder-1",
        )
    )


def test_yandex_posts_batch_and_reads_translations():
    seen = {}

    def handler(request):
        seen["body"] = json.loads(request.content)
        seen["auth"] = request.headers["Authorization"]
        translations = [{"text": text.upper()} for text in seen["body"]["texts"]]
        return httpx.Response(200, json={"translations": translations})

    result = translate(yandex_provider(handler), ["hello", "world"])

    assert result == ["HELLO", "WORLD"]
    assert seen["auth"] == "Api-Key api-key-value"
    assert seen["body"] == {
        "folderId": "folder-1",
        "texts": ["hello", "world"],
        "sourceLanguageCode": "ru",
        "targetLanguageCode": "en",
        "format": "HTML",
    }


def test_yandex_uses_bearer_for_iam_tokens():
    seen = {}

    def handler(request):
        seen["auth"] = request.headers["Authorization"]
        return httpx.Response(200, json={"translations": [{"text": "ok"}]})

    translate(yandex_provider(handler, auth="t1.token"), ["x"])

    assert seen["auth"] == "Bearer t1.token"


def test_yandex_reads_credential_from_file(tmp_path):
    key_file = tmp_path / "key.txt"
    key_file.write_text("from-file\n", encoding="utf-8")

    assert resolve_credential(str(key_file)) == "from-file"
    assert resolve_credential("inline-key") == "inline-key"


def test_yandex_error_status_is_a_request_error():
    def handler(request):
        return httpx.Response(401, json={"message": "Unknown api key"})

    with pytest.raises(RequestError, match="401.*Unknown api key"):
        translate(yandex_provider(handler), ["hello"])


def test_yandex_short_response_is_a_request_error():
    def handler(request):
        return httpx.Response(200, json={"translations": [{"text": "one"}]})

    with pytest.raises(RequestError, match="malformed"):
        translate(yandex_provider(handler), ["one", "two"])


def test_yandex_requires_a_credential():
    with pytest.raises(ConfigurationError):
        YandexTranslationProvider(auth="   ")


class FakeCompletions:
    def __init__(self, content):
        self.content = content
        self.requests = []

    async def create(self, **kwargs):
        self.requests.append(kwargs)
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def openai_provider(content):
    completions = FakeCompletions(content)
    client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return OpenAITranslationProvider(api_key="sk-test", client=client), completions


def test_openai_accepts_fenced_json_array():
    provider, completions = openai_provider('```json\n["Hello", "World"]\n```')

    assert translate(provider, ["Привет", "Мир"]) == ["Hello", "World"]
    payload = json.loads(completions.requests[0]["messages"][1]["content"])
    assert payload["texts"] == ["Привет", "Мир"]
    assert payload["target_language"] == "en"


def test_openai_accepts_translations_object():
    provider, _ = openai_provider('{"translations": ["Hello"]}')

    assert translate(provider, ["Привет"]) == ["Hello"]


def test_openai_count_mismatch_is_a_request_error():
    provider, _ = openai_provider('["Hello"]')

    with pytest.raises(RequestError, match="count mismatch"):
        translate(provider, ["Привет", "Мир"])


def test_openai_invalid_json_is_a_request_error():
    provider, _ = openai_provider("Sorry, I cannot help with that.")

    with pytest.raises(RequestError, match="invalid JSON"):
        translate(provider, ["Привет"])


def test_build_provider_selects_echo(make_settings):
    provider = build_provider(make_settings())

    assert isinstance(provider, EchoTranslationProvider)
    assert translate(provider, ["a", "b"]) == ["a", "b"]


def test_build_provider_selects_yandex(make_settings):
    settings = make_settings(provider="yandex", auth="key", folder="folder-1")

    provider = build_provider(settings)

    assert isinstance(provider, YandexTranslationProvider)
    asyncio.run(provider.aclose())
