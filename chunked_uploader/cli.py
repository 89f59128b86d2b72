"""Command line interface for chunked_uploader."""
from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import Dict, Optional, Sequence, Tuple

from rich.logging import RichHandler

from .cli_progress import SingleFileUploadProgress, render_upload_summary
from .content import StreamContent
from .exceptions import UploaderError
from .models import DEFAULT_CHUNK_SIZE, UploadConfig
from .orchestrator import UploadOrchestrator


DEFAULT_API_URL = UploadConfig.api_url


class CLIError(RuntimeError):
    """Raised when CLI validation/execution fails."""


def _setup_logging(debug: bool, silent: bool, log_level: Optional[str]) -> str:
    """
    Configure logging.

    Default behavior is silent unless --debug, --log-level or LOG_LEVEL is provided.
    Returns a string describing effective mode.
    """
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    logging.disable(logging.NOTSET)

    env_level = os.getenv("LOG_LEVEL")
    if silent or (not debug and not log_level and not env_level):
        logging.disable(logging.CRITICAL)
        root_logger.setLevel(logging.CRITICAL + 1)
        return "silent"

    if debug:
        level = logging.DEBUG
    else:
        level = getattr(logging, (log_level or env_level or "INFO").upper(), logging.INFO)

    handler = RichHandler(
        rich_tracebacks=True,
        markup=False,
        show_time=False,
        show_path=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(handler)
    root_logger.setLevel(level)
    # Per-request logs from httpx are noise next to the chunk logs
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))
    return logging.getLevelName(level)


def _parse_env_line(raw_line: str) -> Optional[Tuple[str, str]]:
    line = raw_line.strip()
    if line.startswith("export "):
        line = line[len("export "):]
    key, sep, value = line.partition("=")
    key = key.strip()
    if line.startswith("#") or not sep or not key:
        return None

    value = value.strip()
    if len(value) >= 2 and value[0] in "'\"" and value[-1] == value[0]:
        value = value[1:-1]
    return key, value


def _load_env_file(path: Path) -> Dict[str, str]:
    """Export KEY=VALUE lines from a dotenv file; variables already set are kept."""
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except FileNotFoundError as exc:
        raise CLIError(f"env file not found: {path}") from exc
    except OSError as exc:
        raise CLIError(f"could not read env file {path}: {exc}") from exc

    loaded = {}
    for entry in filter(None, map(_parse_env_line, lines)):
        key, value = entry
        loaded[key] = os.environ.setdefault(key, value)
    return loaded


def _parse_size(value: str) -> int:
    """Parse sizes such as 1048576, 512K, 8M or 1G."""
    text = value.strip().upper()
    multipliers = {"K": 1024, "M": 1024 ** 2, "G": 1024 ** 3}
    factor = 1
    if text and text[-1] in multipliers:
        factor = multipliers[text[-1]]
        text = text[:-1]
    try:
        size = int(text) * factor
    except ValueError as exc:
        raise CLIError(f"invalid size: {value!r}") from exc
    if size <= 0:
        raise CLIError(f"size must be positive: {value!r}")
    return size


def _build_config(api_url: Optional[str], chunk_size: Optional[str]) -> UploadConfig:
    resolved_chunk = chunk_size or os.getenv("UPLOAD_CHUNK_SIZE")
    return UploadConfig(
        api_url=api_url or os.getenv("UPLOAD_API_URL") or DEFAULT_API_URL,
        chunk_size=_parse_size(resolved_chunk) if resolved_chunk else DEFAULT_CHUNK_SIZE,
    )


async def _run_upload(
    source: Path,
    config: UploadConfig,
    access_token: str,
    replace_video_id: Optional[int],
) -> int:
    file_size = source.stat().st_size
    progress = SingleFileUploadProgress(source.name, file_size)

    async with UploadOrchestrator(config, access_token=access_token) as orchestrator:
        with open(source, "rb") as stream:
            content = StreamContent(stream, file_size, name=source.name)
            progress.start()
            try:
                session = await orchestrator.upload_entire_file(
                    content,
                    replace_video_id=replace_video_id,
                    progress_callback=progress.get_callback(),
                )
            except UploaderError as exc:
                session = exc.session
                if session is not None and session.retryable:
                    logging.getLogger(__name__).info(
                        f"[upload] Retrying once from {session.bytes_written:,} bytes after: {exc}"
                    )
                    try:
                        session = await orchestrator.resume_upload(
                            session, progress_callback=progress.get_callback()
                        )
                    except UploaderError as retry_exc:
                        progress.complete(success=False, error=str(retry_exc))
                        return 1
                else:
                    progress.complete(success=False, error=str(exc))
                    return 1

    progress.complete(success=True, location=session.clip_uri)
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chunk-up",
        description="Upload a file in resumable chunks.",
    )
    parser.add_argument("source", nargs="?", type=Path, help="File to upload")
    parser.add_argument(
        "-s",
        "--chunk-size",
        default=None,
        help="Chunk size in bytes, K/M/G suffixes allowed (default from UPLOAD_CHUNK_SIZE or 1M)",
    )
    parser.add_argument(
        "-r",
        "--replace-video-id",
        type=int,
        default=None,
        help="Replace the file of an existing video instead of creating a new one",
    )
    parser.add_argument(
        "--api-url",
        default=None,
        help=f"API base URL (default from UPLOAD_API_URL or {DEFAULT_API_URL})",
    )
    parser.add_argument(
        "--token",
        default=None,
        help="Access token (default from UPLOAD_ACCESS_TOKEN)",
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Load environment variables from this .env file",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logs")
    parser.add_argument("--silent", action="store_true", help="Only print errors")
    parser.add_argument(
        "--log-level",
        default=None,
        help="Explicit log level (DEBUG/INFO/WARNING/ERROR)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version="chunk-up (from chunked_uploader)",
    )
    return parser


def run_cli(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    used_env_file = args.env_file or (".env" if Path(".env").is_file() else None)
    if used_env_file is not None:
        try:
            _load_env_file(Path(used_env_file))
        except CLIError as exc:
            print(f"ERROR: {exc}", file=sys.stderr)
            return 1

    effective_log_mode = _setup_logging(
        debug=args.debug,
        silent=args.silent,
        log_level=args.log_level,
    )

    if args.source is None:
        parser.print_help()
        return 0

    source = Path(args.source).expanduser()
    if not source.is_file():
        print(f"ERROR: source is not a file: {source}", file=sys.stderr)
        return 1

    access_token = args.token or os.getenv("UPLOAD_ACCESS_TOKEN")
    if not access_token:
        print("ERROR: no access token (use --token or UPLOAD_ACCESS_TOKEN)", file=sys.stderr)
        return 1

    try:
        config = _build_config(args.api_url, args.chunk_size)
    except CLIError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    render_upload_summary(
        source,
        config,
        replace_video_id=args.replace_video_id,
        env_file=used_env_file,
        log_mode=effective_log_mode,
    )

    try:
        return asyncio.run(
            _run_upload(
                source=source,
                config=config,
                access_token=access_token,
                replace_video_id=args.replace_video_id,
            )
        )
    except (CLIError, UploaderError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("Cancelled.", file=sys.stderr)
        return 130


def main() -> None:
    raise SystemExit(run_cli())


if __name__ == "__main__":
    main()
