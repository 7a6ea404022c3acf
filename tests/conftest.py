import asyncio
from typing import Callable, List, Optional, Sequence

import pytest

from wordrelay.configuration import load_settings
from wordrelay.providers import TranslationProvider


class RecordingProvider(TranslationProvider):
    """Fake backend that tags texts with the target language."""

    name = "recording"

    def __init__(
        self,
        *,
        fail_when: Optional[Callable[[Sequence[str]], bool]] = None,
        delay: Optional[Callable[[Sequence[str]], float]] = None,
    ) -> None:
        self.fail_when = fail_when
        self.delay = delay
        self.calls: List[dict] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def translate(
        self,
        texts,
        *,
        source_language,
        target_language,
        folder_id,
        format="HTML",
    ):
        self.calls.append(
            {
                "texts": list(texts),
                "source": source_language,
                "target": target_language,
                "folder": folder_id,
                "format": format,
            }
        )
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay(texts))
            else:
                await asyncio.sleep(0)
            if self.fail_when and self.fail_when(texts):
                raise RuntimeError("backend unavailable")
            return [f"[{target_language}] {text}" for text in texts]
        finally:
            self.in_flight -= 1

    def dispatched(self) -> List[str]:
        return [text for call in self.calls for text in call["texts"]]


class FakeSleep:
    """Records requested delays instead of waiting."""

    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def fake_sleep():
    return FakeSleep()


@pytest.fixture
def recording_provider():
    return RecordingProvider()


@pytest.fixture
def make_settings(tmp_path, monkeypatch):
    for name in ("WORDRELAY_AUTH", "WORDRELAY_FOLDER", "WORDRELAY_TARGETS", "WORDRELAY_SOURCE"):
        monkeypatch.delenv(name, raising=False)
    source_dir = tmp_path / "src"
    source_dir.mkdir()

    def factory(**overrides):
        values = {
            "input": source_dir,
            "output": tmp_path / "out",
            "source": "ru",
            "targets": ["en"],
            "provider": "echo",
        }
        values.update(overrides)
        return load_settings(overrides=values, app_dir=tmp_path)

    return factory
