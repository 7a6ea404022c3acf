"""Command line interface for the wordrelay translator."""

from __future__ import annotations

import argparse
import pathlib
import sys
from typing import Any, Dict, Iterable, List, Optional

from .configuration import load_settings
from .errors import ConfigurationError, ErrorCategory, WordrelayError
from .logger import configure_logging, get_logger
from .translator import LanguageSummary, run_translation

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 2
EXIT_FILES_FAILED = 3

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="wordrelay",
        description=(
            "Translate markdown, YAML and JSON documentation trees through a "
            "remote translation backend while preserving document structure."
        ),
    )
    parser.add_argument("-i", "--input", help="Directory holding the source documents (default: .).")
    parser.add_argument("-o", "--output", help="Directory receiving translated documents.")
    parser.add_argument("-s", "--source", help="Source language, e.g. ru or ru-RU.")
    parser.add_argument(
        "-t",
        "--target",
        action="append",
        dest="targets",
        help="Target language; repeat or separate with commas for several.",
    )
    parser.add_argument(
        "--files",
        action="append",
        help="Relative file to translate; repeat to list several. Defaults to a scan of the input.",
    )
    parser.add_argument("--include", action="append", help="Glob of relative paths to include.")
    parser.add_argument("--exclude", action="append", help="Glob of relative paths to exclude.")
    parser.add_argument("--auth", help="Backend credential, or a path to a file holding it.")
    parser.add_argument("--folder", help="Backend folder/project identifier.")
    parser.add_argument(
        "-p",
        "--provider",
        help="Translation backend: yandex (default), openai or echo.",
    )
    parser.add_argument("-m", "--model", help="Provider-specific model identifier.")
    parser.add_argument(
        "--concurrency",
        type=int,
        help="Maximum number of files translated at once (default: 20).",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        default=None,
        help="Run the full pipeline but echo source text instead of calling the backend.",
    )
    parser.add_argument("--config", help="Path to a YAML configuration file.")
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show detailed progress information.",
    )
    parser.add_argument(
        "--debug-provider",
        action="store_true",
        default=None,
        help="Log complete backend requests and responses for troubleshooting.",
    )
    return parser


def _overrides(args: argparse.Namespace) -> Dict[str, Any]:
    def flatten(values: Optional[List[str]]) -> Optional[List[str]]:
        if not values:
            return None
        return [item.strip() for value in values for item in value.split(",") if item.strip()]

    return {
        "input": args.input,
        "output": args.output,
        "source": args.source,
        "targets": flatten(args.targets),
        "files": flatten(args.files),
        "include": flatten(args.include),
        "exclude": flatten(args.exclude),
        "auth": args.auth,
        "folder": args.folder,
        "provider": args.provider,
        "model": args.model,
        "concurrency": args.concurrency,
        "dry_run": args.dry_run,
        "provider_debug": args.debug_provider,
    }


def print_summary(summary: LanguageSummary) -> None:
    """Output a friendly report once a language completes."""

    print(f"\nTranslation {summary.source_language} -> {summary.target_language} complete.")
    print(f"  Output:          {summary.output_root}")
    print(
        "  Files:           "
        f"{summary.translated_files} translated / {summary.total_files} total "
        f"({summary.copied_files} copied, {summary.skipped_files} skipped, "
        f"{summary.failed_files} failed)"
    )
    print(f"  PROCESSED        bytes: {summary.bytes} chunks: {summary.chunks}")
    print(f"  Elapsed time:    {summary.elapsed_seconds:.2f} seconds")
    if summary.errors:
        print("  Failures:")
        for record in summary.errors:
            print(f"    - {record.path}: {record.message}")
    oversized = [note for note in summary.notes if note.category is ErrorCategory.OVERSIZED_UNIT]
    if oversized:
        print(f"  Untranslated:    {len(oversized)} part(s) over the batch size limit")


def main(argv: Optional[Iterable[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    configure_logging(verbose=args.verbose)

    try:
        settings = load_settings(
            config_path=pathlib.Path(args.config) if args.config else None,
            overrides=_overrides(args),
        )
    except ConfigurationError as exc:
        print(exc)
        return EXIT_FAILURE

    if settings.provider_debug:
        configure_logging(verbose=args.verbose, provider_debug=True)

    try:
        summaries = run_translation(settings, on_language_done=print_summary)
    except ConfigurationError as exc:
        print(exc)
        return EXIT_FAILURE
    except WordrelayError as exc:
        print(f"Translation aborted: {exc}")
        return EXIT_FAILURE
    except KeyboardInterrupt:
        print("Translation interrupted by user.")
        return EXIT_INTERRUPTED
    except Exception as exc:
        logger.error("Translation failed: %s", exc, exc_info=args.verbose)
        print(f"{exc}\nAn unexpected error occurred. Please rerun with --verbose for more details.")
        return EXIT_FAILURE

    if any(summary.failed_files for summary in summaries):
        return EXIT_FILES_FAILED
    return EXIT_OK


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
