"""Triager entry point.

Usage: triager [serve] [--config PATH] [--check]. ``serve`` (the default)
runs the webhook server; ``--check`` validates config and the knowledge base
and exits.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from triager.app import Services, build_knowledge_base
from triager.config import AppConfig, load_config
from triager.knowledge import ConfigurationMissing
from triager.logging import TriagerLogging
from triager.state import AWAITING_INFO, IssueStateStore
from triager.webhook import BackgroundRunner, run_webhook_server

LOG = logging.getLogger("triager")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse CLI with optional subcommand (serve)."""
    argv = argv if argv is not None else sys.argv[1:]
    rest = list(argv)
    if rest and rest[0] == "serve":
        rest = rest[1:]

    parser = argparse.ArgumentParser(
        prog="triager",
        description="Triager - Linear issue triage bot (webhook server)",
    )
    parser.add_argument(
        "--config",
        "-c",
        type=Path,
        default=Path("config.yaml"),
        help="Path to YAML config file",
    )
    parser.add_argument(
        "--check",
        action="store_true",
        help="Only load and validate config and knowledge base, then exit",
    )
    parsed = parser.parse_args(rest)
    parsed.subcommand = "serve"
    return parsed


async def check_knowledge_base(config: AppConfig) -> tuple[int, int]:
    """Load both documents once; returns (team count, label count)."""
    kb = build_knowledge_base(config)
    team_kb = await kb.load_team_kb()
    label_kb = await kb.load_label_kb()
    return len(team_kb.teams), len(label_kb.label_ids())


def serve(config: AppConfig) -> None:
    """Run the webhook server with triage on a background loop."""
    log = logging.getLogger("triager.serve")
    if not config.webhook.enabled:
        log.warning("Webhook disabled in config; nothing to do.")
        return

    services = Services.from_config(config)
    runner = BackgroundRunner()
    runner.start()
    log.info(
        "Triager started | model=%s | kb=%s | state=%s",
        config.openai.model,
        config.knowledge_base.directory,
        config.state.directory if config.state.enabled else "disabled",
    )
    try:
        run_webhook_server(config.webhook, services.orchestrator, runner, config.signing_secret_resolved)
    finally:
        try:
            runner.run(services.aclose(), timeout=10)
        finally:
            runner.stop()


def main(argv: list[str] | None = None) -> int:
    """Entry point for triager."""
    args = parse_args(argv)

    config_path = args.config
    if not config_path.is_file() and config_path == Path("config.yaml"):
        if Path("config.example.yaml").is_file():
            config_path = Path("config.example.yaml")
            logging.basicConfig(level=logging.INFO)
            LOG.warning("config.yaml not found, using config.example.yaml")

    config = load_config(config_path)
    TriagerLogging(config.logging).setup()

    if args.check:
        try:
            teams, labels = asyncio.run(check_knowledge_base(config))
        except ConfigurationMissing as e:
            print("Config error:", e)
            return 1
        print("Config OK:", f"teams={teams}", f"labels={labels}", f"model={config.openai.model}")
        if config.state.enabled:
            waiting = IssueStateStore(Path(config.state.directory)).list_by_state(AWAITING_INFO)
            print("Issues awaiting info:", len(waiting))
        return 0

    try:
        serve(config)
    except KeyboardInterrupt:
        return 0
    except Exception as e:
        LOG.exception("Fatal error: %s", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
