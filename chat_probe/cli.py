"""CLI entry point for chat-probe.

Runs one end-to-end probe against a local provider and prints the
streamed response as it arrives. Configuration comes from the
environment (and .env); there are no command-line flags.

Entry point:
    chat-probe
    python -m chat_probe

Exit status: 0 on success or when no models are found, 1 on failure.
"""

import asyncio
import logging
import sys
import tempfile
from typing import TextIO

from dotenv import load_dotenv

from chat_probe.accumulator import Failure, Success
from chat_probe.config import WORKDIR_PREFIX, Model, get_log_level
from chat_probe.orchestrator import DiscoveryEmpty, ProbeReport, ProbeSettings, run_probe

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────────────
# CONSOLE OUTPUT
# ─────────────────────────────────────────────────────────────────────


class ConsoleReporter:
    """Prints step banners and streamed deltas to stdout."""

    def __init__(self, out: TextIO = sys.stdout):
        self.out = out

    def step(self, number: int, title: str) -> None:
        print(f"Step {number}: {title}...", file=self.out)

    def step_done(self, message: str) -> None:
        print(f"OK: {message}\n", file=self.out)

    def models_found(self, models: list[Model]) -> None:
        print(f"OK: models found: {len(models)}", file=self.out)
        for model in models:
            print(f"   - {model.key}", file=self.out)
        print(file=self.out)

    def request_started(self, model: Model, prompt: str) -> None:
        print(f"   Using model: {model.key}", file=self.out)
        print(f"   Base URL: {model.base_url}\n", file=self.out)
        print("Request:", file=self.out)
        print(f"   User: {prompt}\n", file=self.out)
        print("Response:", file=self.out)
        self.out.write("   Assistant: ")
        self.out.flush()

    def delta(self, text: str) -> None:
        self.out.write(text)
        self.out.flush()


def print_report(report: ProbeReport, out: TextIO = sys.stdout, err: TextIO = sys.stderr) -> int:
    """Print the final summary. Returns exit code."""
    outcome = report.outcome

    if isinstance(outcome, DiscoveryEmpty):
        print(f"No models found for provider '{outcome.provider}'", file=out)
        return 0

    if isinstance(outcome, Success):
        print("\n", file=out)
        print("SUCCESS: streaming chat is working", file=out)
        print(f"   Response length: {len(outcome.text)} characters", file=out)
        print(f"   Chunks received: {outcome.chunk_count}", file=out)
        return 0

    if not isinstance(outcome, Failure):
        raise TypeError(f"Unexpected outcome: {outcome!r}")

    print(f"\nFAILED ({report.stage})", file=out)
    print(f"Error: {outcome.message}", file=err)
    if outcome.trace:
        print("\nStack trace:", file=err)
        print(outcome.trace, file=err)
    if outcome.partial_text:
        logger.debug(f"Partial response before failure: {outcome.partial_text!r}")
    return 1


# ─────────────────────────────────────────────────────────────────────
# ENTRY POINT
# ─────────────────────────────────────────────────────────────────────


async def _run() -> int:
    settings = ProbeSettings.from_env()
    working_dir = tempfile.mkdtemp(prefix=WORKDIR_PREFIX)
    logger.info(f"Working directory: {working_dir}")

    print(f"Testing {settings.provider} integration...\n")
    report = await run_probe(settings, working_dir, reporter=ConsoleReporter())
    return print_report(report)


def main():
    load_dotenv()
    logging.basicConfig(level=get_log_level(), format="%(name)s %(message)s", stream=sys.stderr)
    sys.exit(asyncio.run(_run()))


if __name__ == "__main__":
    main()
