import asyncio

import pytest

from conftest import RecordingProvider
from wordrelay.cache import DedupCache
from wordrelay.errors import ErrorCategory, RequestError
from wordrelay.requester import Requester


def make_requester(provider=None, *, dry_run=False):
    cache = DedupCache()
    requester = Requester(
        provider=provider,
        cache=cache,
        source_language="ru",
        target_language="en",
        folder_id="folder-1",
        dry_run=dry_run,
    )
    return requester, cache


def test_accounts_bytes_and_chunks_before_the_action_runs(recording_provider):
    requester, _ = make_requester(recording_provider)

    requester(["Hello", "Привет"])

    assert requester.stat.bytes == 5 + 12
    assert requester.stat.chunks == 1
    assert recording_provider.calls == []


def test_dry_run_echoes_and_resolves_cache():
    requester, cache = make_requester(dry_run=True)

    async def scenario():
        futures = [cache.reserve(text) for text in ("Hello", "World")]
        result = await requester(["Hello", "World"])()
        return result, [await future for future in futures]

    result, resolved = asyncio.run(scenario())
    assert result == ["Hello", "World"]
    assert resolved == [["Hello"], ["World"]]


def test_live_call_passes_languages_folder_and_html_format(recording_provider):
    requester, cache = make_requester(recording_provider)

    async def scenario():
        future = cache.reserve("Hello")
        result = await requester(["Hello"])()
        return result, await future

    result, resolved = asyncio.run(scenario())
    assert result == ["[en] Hello"]
    assert resolved == ["[en] Hello"]
    assert recording_provider.calls == [
        {
            "texts": ["Hello"],
            "source": "ru",
            "target": "en",
            "folder": "folder-1",
            "format": "HTML",
        }
    ]


def test_backend_failure_is_wrapped_as_request_error():
    provider = RecordingProvider(fail_when=lambda texts: True)
    requester, cache = make_requester(provider)

    async def scenario():
        future = cache.reserve("Hello")
        with pytest.raises(RequestError, match="backend unavailable") as info:
            await requester(["Hello"])()
        return future, info.value

    future, error = asyncio.run(scenario())
    assert error.category is ErrorCategory.REQUEST
    assert error.code == "REQUEST_ERROR"
    assert not future.done()


def test_short_backend_response_is_a_request_error():
    class ShortProvider(RecordingProvider):
        async def translate(self, texts, **kwargs):
            return ["only one"]

    requester, _ = make_requester(ShortProvider())

    with pytest.raises(RequestError, match="1 translations for 2 texts"):
        asyncio.run(requester(["a", "b"])())


def test_live_mode_requires_a_provider():
    with pytest.raises(ValueError):
        make_requester(None, dry_run=False)


def test_action_without_provider_raises_value_error(recording_provider):
    requester, _ = make_requester(recording_provider)
    action = requester(["Hello"])
    requester.provider = None

    with pytest.raises(ValueError, match="provider is required"):
        asyncio.run(action())
