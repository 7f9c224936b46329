"""CLI entrypoint for foreman."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from .config import ensure_dotenv_loaded
from .runner import RunnerOptions, run_foreman


def parse_context(pairs: Optional[List[str]]) -> Dict[str, str]:
    context: Dict[str, str] = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            raise argparse.ArgumentTypeError(f"Context entries must look like KEY=VALUE, got {pair!r}")
        context[key.strip()] = value
    return context


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="foreman <prompt> [options]")
    parser.add_argument("prompt", nargs=argparse.REMAINDER, help="Prompt to run")
    parser.add_argument("--provider", choices=["echo", "ollama"], help="Model provider (default: autodetect)")
    parser.add_argument("--model", help="Model name (default: gemma:2b)")
    parser.add_argument("--base-url", dest="base_url", help="Chat endpoint base URL (default: http://localhost:11434)")
    parser.add_argument("--max-steps", type=int, help="Limit reason/act iterations (default: 6)")
    parser.add_argument("--timeout-ms", type=int, help="Per-model-call timeout in milliseconds")
    parser.add_argument("--log-json", dest="log_json", help="Write JSON logs to file (default: .foreman-log.jsonl)")
    parser.add_argument("--audit-log", dest="audit_log", help="Write tool failure audit records to file")
    parser.add_argument("--no-log-json", action="store_true", help="Disable JSONL and audit logging")
    parser.add_argument("--quiet", action="store_true", help="Suppress human-readable logs")
    parser.add_argument("--pretty", action="store_true", help="Enable colored human logs")
    parser.add_argument("--system", dest="system", help="Load the agent directive from file")
    parser.add_argument("--instructions", dest="instructions", help="Load custom instructions from file")
    parser.add_argument(
        "--context",
        action="append",
        metavar="KEY=VALUE",
        help="Execution context passed to every tool (repeatable), e.g. --context business_id=42",
    )
    return parser


def parse_args(argv: Optional[Sequence[str]] = None) -> RunnerOptions:
    # Load .env early before parsing args
    ensure_dotenv_loaded()

    parser = build_parser()
    parsed = parser.parse_args(argv)

    prompt_text = " ".join(parsed.prompt).strip()
    if not prompt_text:
        parser.error("a prompt is required")

    try:
        context = parse_context(parsed.context)
    except argparse.ArgumentTypeError as exc:
        parser.error(str(exc))

    system_prompt: Optional[str] = None
    if parsed.system:
        system_prompt = Path(parsed.system).resolve().read_text(encoding="utf8")

    custom_instructions: Optional[str] = None
    if parsed.instructions:
        custom_instructions = Path(parsed.instructions).resolve().read_text(encoding="utf8")

    return RunnerOptions(
        prompt=prompt_text,
        provider=parsed.provider,
        model=parsed.model,
        base_url=parsed.base_url,
        max_steps=parsed.max_steps,
        request_timeout_ms=parsed.timeout_ms,
        system_prompt=system_prompt,
        custom_instructions=custom_instructions,
        context=context,
        log_json_path=None if parsed.no_log_json else parsed.log_json,
        audit_log_path=None if parsed.no_log_json else parsed.audit_log,
        enable_human_logs=not parsed.quiet,
        enable_file_logs=not parsed.no_log_json,
        pretty_logs=parsed.pretty,
    )


def main(argv: Optional[Sequence[str]] = None) -> None:
    options = parse_args(argv)
    if run_foreman(options) is None:
        sys.exit(1)


if __name__ == "__main__":
    main()
