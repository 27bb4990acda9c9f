"""Command-line interface for the watchtower agent."""

from __future__ import annotations

import argparse
import asyncio
import sys

import uvicorn

from watchtower.agent.blocked import BlockedPage
from watchtower.agent.cache import PatternCache
from watchtower.agent.page import create_page_app, page_address
from watchtower.agent.settings import AgentSettings, uninstall_url
from watchtower.agent.sync import SyncEngine
from watchtower.matching import Decision
from watchtower.utils.log import configure_logging


class AgentCLI:
    """``watchtower-agent run | check <url> | sync | request <url>``."""

    @staticmethod
    def _build_parser() -> argparse.ArgumentParser:
        """Build the CLI argument parser."""
        parser = argparse.ArgumentParser(
            prog="watchtower-agent", description="Watchtower Agent CLI",
        )
        subparsers = parser.add_subparsers(dest="command")

        subparsers.add_parser(
            "run", help="Keep the local cache in sync and serve the blocked page",
        )
        check_parser = subparsers.add_parser("check", help="Evaluate a URL against the cache")
        check_parser.add_argument("url")
        subparsers.add_parser("sync", help="Pull the pattern snapshot once")
        request_parser = subparsers.add_parser("request", help="Ask for access to a URL")
        request_parser.add_argument("url")
        request_parser.add_argument("--pattern", default=None, help="Pattern to request")

        return parser

    @staticmethod
    async def _run(engine: SyncEngine, settings: AgentSettings) -> None:
        """Sync in the background while serving the blocked page until interrupted."""
        host, port, _ = page_address(settings.blocked_page_url)
        server = uvicorn.Server(
            uvicorn.Config(
                create_page_app(engine, settings.blocked_page_url),
                host=host,
                port=port,
                log_level=settings.log_level.lower(),
            ),
        )
        print(f"Uninstall URL: {uninstall_url(settings)}")
        print(f"Blocked page: {settings.blocked_page_url}")
        await engine.start()
        try:
            await server.serve()
        finally:
            await engine.stop()

    @staticmethod
    async def _check(engine: SyncEngine, settings: AgentSettings, url: str) -> int:
        try:
            decision = await engine.evaluate(url)
        finally:
            await engine.stop()
        print(decision.value)
        if decision is Decision.BLOCK:
            print(BlockedPage(settings.blocked_page_url).redirect_url(url))
            return 2
        return 0

    @staticmethod
    async def _sync(engine: SyncEngine) -> int:
        try:
            ok = await engine.sync()
        finally:
            await engine.stop()
        if not ok:
            return 1
        allow, deny = await engine.cache.lists()
        print(f"{len(allow)} allow, {len(deny)} deny")
        return 0

    @staticmethod
    async def _request(engine: SyncEngine, url: str, pattern: str | None) -> int:
        try:
            ok = await engine.submit_request(url, pattern)
        finally:
            await engine.stop()
        if not ok:
            return 1
        print("Access request sent")
        return 0

    @staticmethod
    def main(argv: list[str] | None = None) -> None:
        """CLI entry point. Catches all exceptions and exits cleanly."""
        parser = AgentCLI._build_parser()
        args = parser.parse_args(argv)

        if args.command is None:
            parser.print_help()
            sys.exit(1)

        try:
            settings = AgentSettings()
            configure_logging(settings.log_level)
            engine = SyncEngine(settings, PatternCache.load(settings.cache_path))
            if args.command == "run":
                asyncio.run(AgentCLI._run(engine, settings))
            elif args.command == "check":
                sys.exit(asyncio.run(AgentCLI._check(engine, settings, args.url)))
            elif args.command == "sync":
                sys.exit(asyncio.run(AgentCLI._sync(engine)))
            elif args.command == "request":
                sys.exit(asyncio.run(AgentCLI._request(engine, args.url, args.pattern)))
        except KeyboardInterrupt:
            pass
        except Exception as error:
            print(f"Error: {error}", file=sys.stderr)
            sys.exit(1)


if __name__ == "__main__":
    AgentCLI.main()
