"""Whistle Sync service - wiring, scheduler and command-line entry point."""

import argparse
import getpass
import logging
import signal
import sys
import threading
from pathlib import Path
from typing import Mapping, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from . import __version__
from .auth import AuthContext, AuthManager, KeychainManager, WhistleShutdownError
from .config import Config, ConfigError, setup_logging
from .sync import (
    BindingConfigError,
    BindingRegistry,
    BindingResolver,
    DeviceResolver,
    RefreshEngine,
    RefreshStats,
    WhistleClient,
)
from .sync.protocols import MetricValue, PublisherProtocol

logger = logging.getLogger(__name__)

REFRESH_JOB_ID = "refresh_job"


class LoggingPublisher:
    """Publisher that logs every update and remembers the latest value.

    Used when no host framework is attached (command-line runs).
    """

    def __init__(self):
        self._values: dict[str, MetricValue] = {}
        self._lock = threading.Lock()

    def post_update(self, binding_name: str, value: MetricValue) -> None:
        with self._lock:
            self._values[binding_name] = value
        logger.info(f"{binding_name} = {value}")

    @property
    def values(self) -> dict[str, MetricValue]:
        with self._lock:
            return dict(self._values)


class RefreshCoordinator:
    """Owns the scheduler that drives the refresh engine.

    One interval job runs the full refresh cycle. Binding-changed refreshes
    are submitted as one-off jobs and may overlap a running cycle.
    """

    def __init__(self, engine: RefreshEngine, refresh_ms: int) -> None:
        self.engine = engine
        self.refresh_ms = refresh_ms
        self.scheduler = BackgroundScheduler()
        self.last_stats: Optional[RefreshStats] = None

    def start(self) -> None:
        """Run the initial refresh and start the periodic scheduler."""
        self._do_refresh()

        self.scheduler.add_job(
            self._do_refresh,
            trigger=IntervalTrigger(seconds=self.refresh_ms / 1000.0),
            id=REFRESH_JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.start()
        logger.info(f"Refresh loop started (interval: {self.refresh_ms}ms)")

    def stop(self) -> None:
        """Shut down the scheduler if running."""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)

    def reschedule(self, refresh_ms: int) -> None:
        """Change the refresh interval on the fly."""
        self.refresh_ms = refresh_ms
        if self.scheduler.running:
            self.scheduler.reschedule_job(
                REFRESH_JOB_ID,
                trigger=IntervalTrigger(seconds=refresh_ms / 1000.0),
            )
            logger.info(f"Refresh interval changed to {refresh_ms}ms")

    def trigger_binding_refresh(self, binding_name: str) -> None:
        """Refresh one binding as soon as possible."""
        if self.scheduler.running:
            self.scheduler.add_job(
                self.engine.binding_changed,
                args=[binding_name],
                id=f"binding_changed:{binding_name}",
                replace_existing=True,
            )
        else:
            self.engine.binding_changed(binding_name)

    def _do_refresh(self) -> None:
        """Perform a refresh cycle."""
        try:
            self.last_stats = self.engine.refresh_all()
        except Exception as e:
            logger.exception(f"Refresh error: {e}")


class WhistleSyncService:
    """Wires configuration, auth, resolution and refresh together."""

    def __init__(
        self,
        config: Config,
        publisher: Optional[PublisherProtocol] = None,
        client: Optional[WhistleClient] = None,
        keychain: Optional[KeychainManager] = None,
    ):
        self.config = config
        self.publisher = publisher or LoggingPublisher()
        self.keychain = keychain or KeychainManager()

        self.context = AuthContext(poll_seconds=config.credential_poll_seconds)
        self.client = client or WhistleClient(
            api_url=config.api_url, timeout=config.request_timeout
        )
        self.auth = AuthManager(self.client, self.context)
        self.registry = BindingRegistry()
        self.resolver = BindingResolver(
            self.auth, DeviceResolver(self.client), self.registry
        )
        self.engine = RefreshEngine(
            self.client, self.auth, self.registry, self.publisher
        )
        self.coordinator = RefreshCoordinator(self.engine, config.refresh_ms)
        self._shutdown_event = threading.Event()
        self._shutdown_done = False

        self._load_credentials()

    def _load_credentials(self) -> None:
        """Hand configured credentials to the auth context."""
        password = self.config.password
        if self.config.username and not password:
            password = self.keychain.load(self.config.username)
        self.context.set_credentials(self.config.username, password)

    def update_config(self, settings: Mapping[str, Optional[str]]) -> None:
        """Apply host configuration (username, password, refresh).

        Raises:
            ConfigError: If the refresh interval is invalid
        """
        previous_refresh = self.config.refresh_ms
        self.config.apply_host_config(settings)
        self._load_credentials()
        if self.config.refresh_ms != previous_refresh:
            self.coordinator.reschedule(self.config.refresh_ms)

    def resolve_bindings(self) -> None:
        """Resolve every binding from the configuration file."""
        self.resolver.resolve_all(self.config.bindings)

    def add_binding(self, binding_name: str, config_string: str) -> bool:
        """Register (or re-register) a binding and refresh it.

        Returns:
            True if the binding was resolved and registered

        Raises:
            BindingConfigError: If the configuration string is malformed
        """
        self.registry.remove(binding_name)
        record = self.resolver.resolve(binding_name, config_string)
        if record is None:
            return False
        self.coordinator.trigger_binding_refresh(binding_name)
        return True

    def remove_binding(self, binding_name: str) -> None:
        self.registry.remove(binding_name)

    def run_once(self) -> RefreshStats:
        """Resolve bindings and run a single refresh cycle.

        Unlike ``run`` this does not wait for credentials.
        """
        if not self.context.has_credentials:
            logger.error("No username / password configured")
            return RefreshStats(errors=["No username / password configured"])
        self.resolve_bindings()
        return self.engine.refresh_all()

    def run(self) -> None:
        """Resolve bindings, start the scheduler and block until shutdown."""
        signal.signal(signal.SIGINT, self._signal_handler)
        signal.signal(signal.SIGTERM, self._signal_handler)

        logger.info(f"Whistle Sync {__version__} starting...")
        try:
            self.resolve_bindings()
        except WhistleShutdownError:
            logger.info("Shut down before credentials were configured")
            return
        self.coordinator.start()
        try:
            self._shutdown_event.wait()
        finally:
            self.shutdown()

    def _signal_handler(self, signum, frame) -> None:
        """Handle shutdown signals."""
        logger.info(f"Received signal {signum}")
        self._shutdown_event.set()
        self.context.shutdown()

    def shutdown(self) -> None:
        """Shutdown the service. Safe to call multiple times."""
        if self._shutdown_done:
            return
        self._shutdown_done = True
        logger.info("Shutting down...")

        self._shutdown_event.set()
        self.context.shutdown()
        self.coordinator.stop()
        self.client.close()

        logger.info("Shutdown complete")

    def __enter__(self) -> "WhistleSyncService":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.shutdown()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="whistle-sync",
        description="Poll the Whistle pet tracker API and publish dog metrics.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to config.json (default: user config directory)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single refresh cycle, print the values and exit",
    )
    parser.add_argument(
        "--save-password",
        action="store_true",
        help="Prompt for the account password and store it in the system keychain",
    )
    parser.add_argument(
        "--forget-password",
        action="store_true",
        help="Remove the stored account password from the system keychain",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    args = _build_parser().parse_args(argv)

    try:
        config = Config.load(args.config)
    except ConfigError as e:
        setup_logging(args.debug)
        logger.error(f"Configuration error: {e}")
        return 2
    setup_logging(args.debug or config.debug_mode)

    if args.save_password or args.forget_password:
        if not config.username:
            print("Set 'username' in the config file first.", file=sys.stderr)
            return 2
        keychain = KeychainManager()
        if args.forget_password:
            return 0 if keychain.delete(config.username) else 1
        password = getpass.getpass(f"Whistle password for {config.username}: ")
        return 0 if keychain.store(config.username, password) else 1

    publisher = LoggingPublisher()
    try:
        with WhistleSyncService(config, publisher=publisher) as service:
            if args.once:
                stats = service.run_once()
                for name, value in sorted(publisher.values.items()):
                    print(f"{name}: {value}")
                return 0 if stats.success else 1
            service.run()
    except (ConfigError, BindingConfigError) as e:
        logger.error(f"Configuration error: {e}")
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main())
