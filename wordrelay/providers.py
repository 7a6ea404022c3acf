"""Translation backend abstractions."""

from __future__ import annotations

import json
import pathlib
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, List, Optional, Sequence

import httpx

from .errors import ConfigurationError, RequestError
from .logger import get_logger

if TYPE_CHECKING:  # pragma: no cover
    from .configuration import WordrelaySettings

logger = get_logger(__name__)

HTML_FORMAT = "HTML"
YANDEX_TRANSLATE_URL = "https://translate.api.cloud.yandex.net/translate/v2/translate"


def resolve_credential(auth: str) -> str:
    """Return the credential itself, reading it from a file when given a path."""

    candidate = pathlib.Path(auth).expanduser()
    try:
        if candidate.is_file():
            return candidate.read_text(encoding="utf-8").strip()
    except OSError as exc:
        raise ConfigurationError(f"Credential file could not be read: {exc}") from exc
    return auth.strip()


class TranslationProvider(ABC):
    """Abstract adapter for translation backends."""

    name = "abstract"

    @abstractmethod
    async def translate(
        self,
        texts: Sequence[str],
        *,
        source_language: str,
        target_language: str,
        folder_id: Optional[str],
        format: str = HTML_FORMAT,
    ) -> List[str]:
        """Translate the texts and return results in the same order."""

    async def aclose(self) -> None:
        """Release network resources."""

    def _log_debug(self, label: str, payload: Any) -> None:
        if not getattr(self, "debug", False):
            return
        try:
            message = json.dumps(payload, ensure_ascii=False, indent=2)
        except (TypeError, ValueError):
            message = repr(payload)
        logger.debug("[provider-debug] %s:\n%s", label, message)


class EchoTranslationProvider(TranslationProvider):
    """A provider that returns the original text (useful for testing)."""

    name = "echo"

    async def translate(
        self,
        texts: Sequence[str],
        *,
        source_language: str,
        target_language: str,
        folder_id: Optional[str],
        format: str = HTML_FORMAT,
    ) -> List[str]:
        return list(texts)


class YandexTranslationProvider(TranslationProvider):
    """Yandex Cloud Translate v2 over its REST interface."""

    name = "yandex"

    def __init__(
        self,
        *,
        auth: str,
        endpoint: Optional[str] = None,
        timeout: float = 60.0,
        debug: bool = False,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.debug = debug
        self.endpoint = endpoint or YANDEX_TRANSLATE_URL
        credential = resolve_credential(auth)
        if not credential:
            raise ConfigurationError("Yandex Cloud credential is empty.")
        self._headers = {
            "Authorization": self._authorization(credential),
            "Content-Type": "application/json",
        }
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(connect=10.0, write=60.0, read=timeout, pool=10.0)
        )

    @staticmethod
    def _authorization(credential: str) -> str:
        # IAM tokens are issued with a "t1." prefix; everything else is an API key
        if credential.startswith("t1."):
            return f"Bearer {credential}"
        return f"Api-Key {credential}"

    async def translate(
        self,
        texts: Sequence[str],
        *,
        source_language: str,
        target_language: str,
        folder_id: Optional[str],
        format: str = HTML_FORMAT,
    ) -> List[str]:
        if not texts:
            return []

        body = {
            "folderId": folder_id,
            "texts": list(texts),
            "sourceLanguageCode": source_language,
            "targetLanguageCode": target_language,
            "format": format,
        }
        self._log_debug("provider.request.payload", body)

        try:
            response = await self._client.post(self.endpoint, headers=self._headers, json=body)
            response.raise_for_status()
            result = response.json()
        except httpx.HTTPStatusError as exc:
            raise RequestError(
                f"Yandex Translate API error ({exc.response.status_code}): "
                f"{_error_text(exc.response)}"
            ) from exc
        except httpx.TimeoutException as exc:
            raise RequestError("Yandex Translate API request timeout") from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise RequestError(f"Yandex Translate API call failed: {exc}") from exc

        self._log_debug("provider.response.raw", result)

        translations = result.get("translations") if isinstance(result, dict) else None
        if not isinstance(translations, list) or len(translations) != len(texts):
            raise RequestError(
                "Translation provider response malformed: expected "
                f"{len(texts)} translations."
            )
        output: List[str] = []
        for item in translations:
            text = item.get("text") if isinstance(item, dict) else None
            if not isinstance(text, str):
                raise RequestError("Translation provider response malformed: missing text.")
            output.append(text)
        return output

    async def aclose(self) -> None:
        await self._client.aclose()


def _error_text(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text[:500]
    if isinstance(payload, dict) and payload.get("message"):
        return str(payload["message"])
    return str(payload)[:500]


class OpenAITranslationProvider(TranslationProvider):
    """Translation provider that uses OpenAI chat models."""

    name = "openai"
    DEFAULT_MODEL = "gpt-4o-mini"

    SYSTEM_PROMPT = (
        "You are a professional translator. Return only JSON. "
        "Translate each string of the provided array from the source language "
        "into the target language. Strings are HTML fragments: keep tags, "
        "attributes, placeholders, numbers and markup exactly as provided and "
        "translate only human-readable text. Respond strictly with a JSON array "
        "of translated strings in the same order and of the same length. "
        "Do not add commentary. Do not wrap the JSON in markdown code fences."
    )

    def __init__(
        self,
        *,
        api_key: str,
        model: Optional[str] = None,
        endpoint: Optional[str] = None,
        timeout: float = 60.0,
        debug: bool = False,
        client: Any = None,
    ) -> None:
        self.debug = debug
        self.model = model or self.DEFAULT_MODEL
        if client is None:
            from openai import AsyncOpenAI

            client = AsyncOpenAI(
                api_key=resolve_credential(api_key),
                base_url=endpoint,
                timeout=timeout,
            )
        self._client = client

    async def translate(
        self,
        texts: Sequence[str],
        *,
        source_language: str,
        target_language: str,
        folder_id: Optional[str],
        format: str = HTML_FORMAT,
    ) -> List[str]:
        if not texts:
            return []

        user_payload = {
            "source_language": source_language,
            "target_language": target_language,
            "format": format,
            "texts": list(texts),
        }
        self._log_debug("provider.request.payload", user_payload)

        try:
            response = await self._client.chat.completions.create(
                model=self.model,
                temperature=0,
                messages=[
                    {"role": "system", "content": self.SYSTEM_PROMPT},
                    {
                        "role": "user",
                        "content": json.dumps(user_payload, ensure_ascii=False),
                    },
                ],
            )
        except Exception as exc:  # pragma: no cover - network call
            raise RequestError(f"Translation service temporarily unavailable: {exc}") from exc

        content: Optional[str] = None
        for choice in getattr(response, "choices", None) or []:
            message = getattr(choice, "message", None)
            message_content = getattr(message, "content", None)
            if message_content:
                content = str(message_content)
                break
        if content is None:
            raise RequestError("Translation provider response empty or unrecognised.")

        translations = self._normalise_translations(content)
        self._log_debug("provider.response.items", translations)
        if len(translations) != len(texts):
            raise RequestError(
                f"Translation count mismatch: expected {len(texts)}, got {len(translations)}."
            )
        return translations

    def _strip_code_fence(self, text: str) -> str:
        """Remove leading/trailing markdown code fences if present."""

        stripped = text.strip()
        if not stripped.startswith("```"):
            return stripped

        first_newline = stripped.find("\n")
        if first_newline == -1:
            return stripped
        body = stripped[first_newline + 1 :]
        closing_index = body.rfind("```")
        if closing_index != -1:
            body = body[:closing_index]
        return body.strip()

    def _normalise_translations(self, payload: str) -> List[str]:
        try:
            parsed = json.loads(self._strip_code_fence(payload))
        except json.JSONDecodeError as exc:
            raise RequestError(f"Translation provider returned invalid JSON: {exc}") from exc

        if isinstance(parsed, dict):
            parsed = parsed.get("translations")
        if not isinstance(parsed, list) or not all(isinstance(item, str) for item in parsed):
            raise RequestError(
                "Translation provider response malformed: expected an array of strings."
            )
        return parsed

    async def aclose(self) -> None:
        close = getattr(self._client, "close", None)
        if close is not None:
            await close()


def build_provider(settings: "WordrelaySettings") -> TranslationProvider:
    """Factory to create providers from validated settings."""

    normalized = (settings.provider or "yandex").strip().lower()
    if normalized in {"yandex", "yandex-cloud", "yc", "default"}:
        return YandexTranslationProvider(
            auth=settings.auth_value(),
            endpoint=settings.endpoint,
            timeout=settings.timeout,
            debug=settings.provider_debug,
        )
    if normalized in {"openai", "gpt"}:
        return OpenAITranslationProvider(
            api_key=settings.auth_value(),
            model=settings.model,
            endpoint=settings.endpoint,
            timeout=settings.timeout,
            debug=settings.provider_debug,
        )
    if normalized in {"echo", "noop", "mock"}:
        return EchoTranslationProvider()
    raise ConfigurationError(f"Unknown translation provider '{settings.provider}'.")
