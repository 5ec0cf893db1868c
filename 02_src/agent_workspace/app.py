"""Application bootstrap and lifecycle management."""

import os
from pathlib import Path
from typing import Protocol

from .bridge import BridgeQueue
from .bus import AgentBus, CommandExtractor, IAgentBus
from .config import RelaySettings, resolve_agents_path, resolve_db_path
from .directory import AgentDirectory, IAgentDirectory
from .llm import ILLMProvider, build_providers
from .logging_config import get_logger
from .relay import ChatRelay, IChatRelay
from .storage import IStorage, Storage

logger = get_logger(__name__)


class IApplication(Protocol):
    """Bootstrap and lifecycle."""

    async def start(self) -> None:
        """Initialize components in dependency order."""
        ...

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        ...


class Application:
    """Wires storage, directory, bus, bridge queue and relay together."""

    def __init__(
        self,
        db_path: str | Path | None = None,
        agents_path: str | Path | None = None,
        providers: dict[str, ILLMProvider] | None = None,
        settings: RelaySettings | None = None,
    ):
        env_db_path = os.getenv("DATABASE_URL") if db_path is None else db_path
        self._db_path = resolve_db_path(env_db_path)
        env_agents_path = os.getenv("AGENTS_CONFIG") if agents_path is None else agents_path
        self._agents_path = resolve_agents_path(env_agents_path)
        self._settings = settings or RelaySettings.from_env()

        # Injected providers belong to the caller and are not closed on stop()
        self._injected_providers = providers

        self._storage: IStorage | None = None
        self._directory: IAgentDirectory | None = None
        self._bus: IAgentBus | None = None
        self._extractor: CommandExtractor | None = None
        self._bridge: BridgeQueue | None = None
        self._providers: dict[str, ILLMProvider] | None = None
        self._relay: IChatRelay | None = None

    async def start(self) -> None:
        """Initialize components in dependency order."""
        logger.info("Starting application")

        # 1. Storage and directory (no dependencies)
        self._storage = Storage(self._db_path)
        await self._storage.init()
        logger.info("Storage initialized")
        self._directory = AgentDirectory.from_file(self._agents_path)

        # 2. Bus and directive extraction (Storage + Directory)
        self._bus = AgentBus(self._storage, self._directory)
        self._extractor = CommandExtractor(self._bus, self._directory)

        # 3. Bridge queue (Storage)
        self._bridge = BridgeQueue(
            self._storage,
            poll_interval=self._settings.bridge_poll_interval,
            timeout=self._settings.bridge_timeout,
        )

        # 4. Providers and relay
        if self._injected_providers is not None:
            self._providers = self._injected_providers
        else:
            self._providers = build_providers()
        self._relay = ChatRelay(
            self._storage,
            self._directory,
            self._bus,
            self._extractor,
            self._bridge,
            self._providers,
            self._settings,
        )
        logger.info("Providers available: %s", ", ".join(sorted(self._providers)) or "none")

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        if self._providers and self._injected_providers is None:
            for provider in self._providers.values():
                await provider.close()
        self._providers = None
        self._relay = None

        if self._storage:
            await self._storage.close()
            self._storage = None
            logger.info("Storage closed")

    def _require(self, component):
        if component is None:
            raise RuntimeError("Application not started")
        return component

    @property
    def settings(self) -> RelaySettings:
        return self._settings

    @property
    def storage(self) -> IStorage:
        return self._require(self._storage)

    @property
    def directory(self) -> IAgentDirectory:
        return self._require(self._directory)

    @property
    def bus(self) -> IAgentBus:
        return self._require(self._bus)

    @property
    def extractor(self) -> CommandExtractor:
        return self._require(self._extractor)

    @property
    def bridge(self) -> BridgeQueue:
        return self._require(self._bridge)

    @property
    def relay(self) -> IChatRelay:
        return self._require(self._relay)
