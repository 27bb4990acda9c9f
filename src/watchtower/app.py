"""Litestar application factory and CLI entry point."""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from litestar import Litestar, MediaType, Request, Response
from litestar.config.cors import CORSConfig
from litestar.datastructures import State
from litestar.di import Provide
from litestar.exceptions import NotAuthorizedException
from sqlalchemy.exc import SQLAlchemyError

from watchtower.config import ConfigLoader, Settings
from watchtower.controllers.admin import AdminController
from watchtower.controllers.auth import SESSION_COOKIE, AuthController, SetupController
from watchtower.controllers.device_api import DeviceApiController
from watchtower.controllers.health import HealthController
from watchtower.controllers.ws import device_socket
from watchtower.dao.device_dao import DeviceDAO
from watchtower.dao.pattern_dao import PatternDAO
from watchtower.dao.request_dao import RequestDAO
from watchtower.dao.user_dao import UserDAO
from watchtower.models.user import User
from watchtower.plugins.log_notifier import LogNotifierPlugin
from watchtower.realtime.hub import ConnectionHub
from watchtower.realtime.publisher import SnapshotPublisher
from watchtower.resources.admin import AdminResource
from watchtower.resources.auth import AuthResource
from watchtower.resources.device import DeviceResource
from watchtower.resources.health import HealthResource
from watchtower.services.device_service import DeviceService
from watchtower.services.liveness_monitor import LivenessMonitor
from watchtower.services.liveness_service import LivenessService
from watchtower.services.notification_dispatcher import NotificationDispatcher
from watchtower.services.pattern_service import PatternService
from watchtower.services.request_service import RequestService
from watchtower.services.user_service import UserService
from watchtower.utils.db import Database
from watchtower.utils.jwt import JWTManager
from watchtower.utils.log import configure_logging

logger = logging.getLogger(__name__)


class AppFactory:
    """Builds and configures the Litestar application. All methods are static."""

    @staticmethod
    def _build(settings: Settings) -> State:
        """Construct the full object graph once.

        pool → DAOs → services ─┬→ AuthResource
                                ├→ AdminResource ←─ publisher ←─ hub
                                └→ DeviceResource ←─ liveness, dispatcher
        dispatcher ← LogNotifierPlugin ← user_service
        monitor ← liveness, dispatcher
        JWTManager.configure() (class-level)
        """
        pool = Database.init(settings.database_url)
        device_dao = DeviceDAO(pool)
        pattern_dao = PatternDAO(pool)
        request_dao = RequestDAO(pool)
        user_dao = UserDAO(pool)

        device_service = DeviceService(device_dao)
        pattern_service = PatternService(pattern_dao, device_dao)
        request_service = RequestService(request_dao, pattern_dao)
        user_service = UserService(
            user_dao, session_expire_minutes=settings.session_expire_minutes,
        )
        liveness = LivenessService(
            device_dao, threshold_seconds=settings.liveness_threshold_seconds,
        )
        JWTManager.configure(
            secret_key=settings.secret_key, algorithm=settings.jwt_algorithm,
        )

        hub = ConnectionHub()
        publisher = SnapshotPublisher(hub, pattern_service)
        dispatcher = NotificationDispatcher(LogNotifierPlugin(user_service))
        monitor = LivenessMonitor(
            liveness, dispatcher,
            interval_seconds=settings.liveness_sweep_interval_seconds,
        )
        return State({
            "settings": settings,
            "hub": hub,
            "dispatcher": dispatcher,
            "monitor": monitor,
            "health": HealthResource(hub=hub, pool=pool),
            "auth": AuthResource(user_service=user_service),
            "admin": AdminResource(
                device_service=device_service,
                pattern_service=pattern_service,
                request_service=request_service,
                user_service=user_service,
                publisher=publisher,
                hub=hub,
            ),
            "device": DeviceResource(
                device_service=device_service,
                pattern_service=pattern_service,
                request_service=request_service,
                liveness=liveness,
                dispatcher=dispatcher,
                hub=hub,
                publisher=publisher,
                settings=settings,
            ),
        })

    @staticmethod
    @asynccontextmanager
    async def _lifespan(app: Litestar) -> AsyncIterator[None]:
        """Create tables and start background work; stop it all on shutdown."""
        await Database.create_tables()
        hub: ConnectionHub = app.state.hub
        monitor: LivenessMonitor = app.state.monitor
        dispatcher: NotificationDispatcher = app.state.dispatcher
        hub.start()
        monitor.start()
        try:
            yield
        finally:
            await monitor.stop()
            await hub.stop()
            await dispatcher.drain()
            await Database.close()

    @staticmethod
    async def provide_admin(
        request: Request[object, object, State],
    ) -> User:
        """Litestar dependency: resolve the admin from the session cookie."""
        token = request.cookies.get(SESSION_COOKIE, "")
        auth_resource: AuthResource = request.app.state.auth
        try:
            return await auth_resource.resolve_session(token)
        except ValueError as error:
            raise NotAuthorizedException(detail=str(error)) from error

    @staticmethod
    def provide_settings(state: State) -> Settings:
        """Provide the Settings the app was built with."""
        settings: Settings = state.settings
        return settings

    @staticmethod
    def provide_auth(state: State) -> AuthResource:
        """Provide the pre-built AuthResource from app state."""
        auth_resource: AuthResource = state.auth
        return auth_resource

    @staticmethod
    def provide_health(state: State) -> HealthResource:
        """Provide the pre-built HealthResource from app state."""
        health_resource: HealthResource = state.health
        return health_resource

    @staticmethod
    def provide_admin_resource(state: State) -> AdminResource:
        """Provide the pre-built AdminResource from app state."""
        admin_resource: AdminResource = state.admin
        return admin_resource

    @staticmethod
    def provide_device_resource(state: State) -> DeviceResource:
        """Provide the pre-built DeviceResource from app state."""
        device_resource: DeviceResource = state.device
        return device_resource

    @staticmethod
    def handle_store_error(
        request: Request[object, object, State], error: SQLAlchemyError,
    ) -> Response[dict[str, str]]:
        """Log store faults and return a generic 500 without the detail."""
        logger.error("Store error on %s %s: %s", request.method, request.url.path, error)
        return Response(
            content={"detail": "Internal server error"},
            status_code=500,
            media_type=MediaType.JSON,
        )

    @staticmethod
    def create_app(settings: Settings | None = None) -> Litestar:
        """Create and configure the Litestar application."""
        if settings is None:
            settings = ConfigLoader.load_settings()
        return Litestar(
            route_handlers=[
                HealthController, SetupController, AuthController,
                AdminController, DeviceApiController, device_socket,
            ],
            state=AppFactory._build(settings),
            lifespan=[AppFactory._lifespan],
            cors_config=CORSConfig(
                allow_origins=settings.cors_allow_origins, allow_credentials=True,
            ),
            exception_handlers={SQLAlchemyError: AppFactory.handle_store_error},
            dependencies={
                "admin": Provide(AppFactory.provide_admin),
                "settings": Provide(AppFactory.provide_settings, sync_to_thread=False),
                "auth": Provide(AppFactory.provide_auth, sync_to_thread=False),
                "health_resource": Provide(AppFactory.provide_health, sync_to_thread=False),
                "admin_resource": Provide(
                    AppFactory.provide_admin_resource, sync_to_thread=False,
                ),
                "device_resource": Provide(
                    AppFactory.provide_device_resource, sync_to_thread=False,
                ),
            },
        )


# Module-level factory for uvicorn (--factory) and the test fixtures.
create_app = AppFactory.create_app


class CLI:
    """Command-line interface for the watchtower server."""

    @staticmethod
    def _build_parser() -> argparse.ArgumentParser:
        """Build the CLI argument parser."""
        parser = argparse.ArgumentParser(
            prog="watchtower", description="Watchtower Server CLI",
        )
        subparsers = parser.add_subparsers(dest="command")

        run_parser = subparsers.add_parser("run", help="Start the server")
        run_parser.add_argument("--host", default="0.0.0.0")
        run_parser.add_argument("--port", type=int, default=8080)
        run_parser.add_argument("--reload", action="store_true", help="Auto-reload on file changes")

        return parser

    @staticmethod
    def main(argv: list[str] | None = None) -> None:
        """CLI entry point. Catches all exceptions and exits cleanly."""
        parser = CLI._build_parser()
        args = parser.parse_args(argv)

        if args.command is None:
            parser.print_help()
            sys.exit(1)

        try:
            if args.command == "run":
                import uvicorn

                settings = ConfigLoader.load_settings()
                configure_logging(settings.log_level)
                uvicorn.run(
                    "watchtower.app:create_app",
                    factory=True,
                    host=args.host,
                    port=args.port,
                    reload=args.reload,
                    ws_max_size=settings.ws_max_message_size,
                )
        except KeyboardInterrupt:
            pass
        except Exception as error:
            print(f"Error: {error}", file=sys.stderr)
            sys.exit(1)


if __name__ == "__main__":
    CLI.main()
