"""Layered configuration loader for wordrelay."""

from __future__ import annotations

import pathlib
from typing import Annotated, Any, Dict, List, Mapping, Optional, Sequence

import yaml
from pydantic import Field, SecretStr, ValidationError, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from .errors import ConfigurationError
from .structures import Locale

APP_NAME = "wordrelay"
CONFIG_FILENAMES = (".wordrelay.yaml", ".wordrelay.yml", "wordrelay.yaml")
CONFIG_SECTION = "translate"
PROVIDERS = ("yandex", "openai", "echo")

StringList = Annotated[List[str], NoDecode]


class WordrelaySettings(BaseSettings):
    """Schema describing all supported configuration options."""

    model_config = SettingsConfigDict(
        env_prefix="WORDRELAY_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    input: pathlib.Path = Field(default=pathlib.Path("."))
    output: Optional[pathlib.Path] = Field(default=None)
    source: Optional[str] = Field(default=None, description="Source language, e.g. ru or ru-RU.")
    targets: StringList = Field(default_factory=list)
    files: StringList = Field(default_factory=list)
    include: StringList = Field(default_factory=list)
    exclude: StringList = Field(default_factory=list)

    auth: Optional[SecretStr] = Field(default=None, description="API key, IAM token or a file with one.")
    folder: Optional[str] = Field(default=None, description="Backend folder/project identifier.")
    provider: str = Field(default="yandex")
    model: Optional[str] = Field(default=None)
    endpoint: Optional[str] = Field(default=None)
    timeout: float = Field(default=60.0, gt=0)

    dry_run: bool = Field(default=False)
    concurrency: int = Field(default=20, ge=1)
    batch_bytes: int = Field(default=10000, ge=1)
    retry_limit: int = Field(default=3, ge=0)
    retry_base_delay: float = Field(default=1.0, ge=0)
    provider_debug: bool = Field(default=False)

    @field_validator("targets", "files", "include", "exclude", mode="before")
    @classmethod
    def _split_list(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        if isinstance(value, (list, tuple)):
            return [str(item).strip() for item in value if str(item).strip()]
        return value

    @field_validator("provider", mode="before")
    @classmethod
    def _normalise_provider(cls, value: Any) -> Any:
        if isinstance(value, str):
            normalized = value.strip().lower().replace("_", "-")
            synonyms = {"yandex-cloud": "yandex", "yc": "yandex", "gpt": "openai", "mock": "echo"}
            return synonyms.get(normalized, normalized)
        return value

    @field_validator("source", "folder", "model", "endpoint", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    def auth_value(self) -> str:
        return self.auth.get_secret_value() if self.auth else ""

    def source_locale(self) -> Locale:
        return Locale.parse(self.source or "")

    def target_locales(self) -> List[Locale]:
        return [Locale.parse(target) for target in self.targets]

    def output_root(self, target: Locale) -> pathlib.Path:
        """Output directory for one target language."""

        if self.output is None:
            raise ConfigurationError("Required param output is not configured.")
        raw = str(self.output)
        if "{target}" in raw:
            return pathlib.Path(raw.replace("{target}", target.language))
        if len(self.targets) > 1:
            return self.output / target.language
        return self.output


def discover_config_file(app_dir: pathlib.Path) -> Optional[pathlib.Path]:
    for name in CONFIG_FILENAMES:
        candidate = app_dir / name
        if candidate.is_file():
            return candidate
    return None


def _load_yaml_layer(path: pathlib.Path) -> Dict[str, Any]:
    """Read the YAML configuration file, preferring its ``translate`` section."""

    try:
        parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigurationError(f"Configuration file could not be read: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid configuration file {path}: {exc}") from exc

    if parsed is None:
        return {}
    if not isinstance(parsed, Mapping):
        raise ConfigurationError(
            f"Invalid configuration file {path}: expected a mapping at the root."
        )
    section = parsed.get(CONFIG_SECTION)
    layer = dict(section) if isinstance(section, Mapping) else dict(parsed)
    if "target" in layer and "targets" not in layer:
        layer["targets"] = layer.pop("target")
    return {key.replace("-", "_"): value for key, value in layer.items()}


def _validate_required(settings: WordrelaySettings) -> None:
    errors: List[str] = []

    if not settings.source:
        errors.append("Required param source is not configured.")
    if not settings.targets:
        errors.append("Required param target is not configured.")
    if settings.provider not in PROVIDERS:
        errors.append(
            f"Unknown provider '{settings.provider}'. Choose one of: {', '.join(PROVIDERS)}."
        )
    elif settings.provider != "echo":
        if not settings.auth_value():
            errors.append("Required param auth is not configured.")
        if settings.provider == "yandex" and not settings.folder:
            errors.append("Required param folder is not configured.")
    if settings.output is None:
        errors.append("Required param output is not configured.")
    elif settings.output.expanduser().resolve() == settings.input.expanduser().resolve():
        errors.append("The output directory matches the input. Refusing to overwrite source files.")

    languages = [("source", settings.source)] if settings.source else []
    languages.extend(("target", target) for target in settings.targets)
    for label, value in languages:
        try:
            Locale.parse(value)
        except ValueError as exc:
            errors.append(f"Invalid {label} language: {exc}")

    if errors:
        bullet_list = "\n".join(f"- {message}" for message in errors)
        raise ConfigurationError("Configuration validation errors detected:\n" + bullet_list)


def _format_validation_errors(entries: Sequence[Mapping[str, Any]]) -> str:
    details: List[str] = []
    for entry in entries:
        location = ".".join(str(part) for part in entry.get("loc") or () if part not in {None, ""})
        message = str(entry.get("msg") or "Invalid value")
        prefix = f"{location}: " if location else ""
        details.append(f"- {prefix}{message}")
    return "Configuration validation errors detected:\n" + "\n".join(details)


def load_settings(
    config_path: Optional[pathlib.Path] = None,
    overrides: Optional[Mapping[str, Any]] = None,
    app_dir: Optional[pathlib.Path] = None,
) -> WordrelaySettings:
    """Build validated settings from every configuration layer.

    Precedence, highest first: ``overrides`` (command line), the YAML
    configuration file, process environment, ``.env`` in ``app_dir``.
    """

    base_dir = app_dir or pathlib.Path.cwd()
    if config_path is not None and not config_path.is_file():
        raise ConfigurationError(f"Configuration file not found: {config_path}")
    path = config_path or discover_config_file(base_dir)

    values: Dict[str, Any] = _load_yaml_layer(path) if path else {}
    values.update({key: value for key, value in (overrides or {}).items() if value is not None})

    dotenv_path = base_dir / ".env"
    try:
        settings = WordrelaySettings(
            _env_file=dotenv_path if dotenv_path.is_file() else None,
            **values,
        )
    except ValidationError as exc:
        raise ConfigurationError(_format_validation_errors(exc.errors())) from exc

    _validate_required(settings)
    return settings
