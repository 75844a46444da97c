"""CRUD service manager for schema-crud-mcp.

Provides a singleton `CrudService` initialized in a background thread during
the FastMCP lifespan. Tools wait briefly for initialization and fail fast
when it failed or the service was stopped.
"""

from __future__ import annotations

import asyncio
from dataclasses import replace
import hashlib
import threading
import time
from typing import ClassVar

from fastmcp.utilities.logging import get_logger
import sqlalchemy as sa
from sqlalchemy.exc import SQLAlchemyError

from schema_crud_mcp.execute.runner import SqlAlchemyExecutor
from schema_crud_mcp.query.identifiers import SqlStyle
from schema_crud_mcp.schema_tools.reflection import SchemaProvider
from schema_crud_mcp.services.config_service import ConfigService
from schema_crud_mcp.services.crud_service import CrudService
from schema_crud_mcp.services.state import (
    INIT_NOT_READY_PHASES,
    ServiceInitPhase,
    ServiceInitState,
)

# Upper bound a tool call waits for a pending initialization
_READY_WAIT_SECONDS = 30.0


class CrudServiceManager:
    """Singleton manager for the process-wide `CrudService`."""

    _instance: ClassVar[CrudServiceManager | None] = None
    _lock: ClassVar[threading.Lock] = threading.Lock()

    def __init__(self) -> None:
        self._crud_service: CrudService | None = None
        self._logger = get_logger(__name__)
        self._thread_lock = threading.Lock()
        self._init_thread: threading.Thread | None = None
        self._thread_ready = threading.Event()
        self._state = ServiceInitState(phase=ServiceInitPhase.IDLE)

    @classmethod
    def get_instance(cls) -> CrudServiceManager:
        """Get the singleton instance of CrudServiceManager."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Reset the singleton instance (primarily for testing)."""
        with cls._lock:
            cls._instance = None

    def start_background_initialization(self) -> None:
        """Start background initialization exactly once without blocking."""
        with self._thread_lock:
            if self._state.phase is not ServiceInitPhase.IDLE:
                self._logger.debug("Initialization already %s; skipping start", self._state.phase)
                return
            self._state = replace(
                self._state, phase=ServiceInitPhase.STARTING, started_at=time.time()
            )
            self._thread_ready.clear()

            def _runner() -> None:
                try:
                    service = self._initialize_sync()
                except (ValueError, RuntimeError, OSError, SQLAlchemyError) as exc:
                    self._logger.exception("CrudService initialization failed")
                    with self._thread_lock:
                        if self._state.phase is not ServiceInitPhase.STOPPED:
                            self._state = replace(
                                self._state,
                                phase=ServiceInitPhase.FAILED,
                                error_message=str(exc),
                                completed_at=time.time(),
                            )
                else:
                    # A shutdown that raced the initialization wins
                    with self._thread_lock:
                        stopped = self._state.phase is ServiceInitPhase.STOPPED
                        if not stopped:
                            self._crud_service = service
                            self._state = replace(
                                self._state,
                                phase=ServiceInitPhase.READY,
                                completed_at=time.time(),
                                dialect=service.engine.dialect.name,
                            )
                    if stopped:
                        self._logger.info("Discarding CrudService initialized after shutdown")
                        service.close()
                        service.engine.dispose()
                finally:
                    self._thread_ready.set()

            self._init_thread = threading.Thread(target=_runner, name="crud-init", daemon=True)
            self._init_thread.start()

    async def ensure_ready(self, wait_timeout: float | None = None) -> bool:
        """Wait for initialization completion; True when READY."""
        phase = self._state.phase
        if phase is ServiceInitPhase.READY:
            return True
        if phase in {ServiceInitPhase.FAILED, ServiceInitPhase.STOPPED}:
            return False
        await asyncio.to_thread(self._thread_ready.wait, wait_timeout)
        return self._state.phase is ServiceInitPhase.READY

    async def get_crud_service(self) -> CrudService:
        """Get the initialized CrudService, starting initialization if needed.

        Raises:
            RuntimeError: If initialization is still pending, failed or was stopped
        """
        self.start_background_initialization()
        await self.ensure_ready(wait_timeout=_READY_WAIT_SECONDS)

        phase = self._state.phase
        if phase in INIT_NOT_READY_PHASES:
            msg = "CrudService initialization in progress"
            raise RuntimeError(msg)
        if phase is ServiceInitPhase.FAILED:
            msg = f"CrudService is not available due to initialization failure: {self._state.error_message}"
            raise RuntimeError(msg)
        if phase is ServiceInitPhase.STOPPED or self._crud_service is None:
            msg = "CrudService has been stopped"
            raise RuntimeError(msg)
        return self._crud_service

    async def shutdown(self) -> None:
        """Close the CrudService and dispose of its engine.

        An initialization still running in the background is discarded when it
        completes.
        """
        with self._thread_lock:
            service = self._crud_service
            self._crud_service = None
            self._state = replace(self._state, phase=ServiceInitPhase.STOPPED)
        if service is not None:
            self._logger.info("Shutting down CrudService…")
            service.close()
            service.engine.dispose()
            self._logger.info("CrudService shutdown completed")

    def status(self) -> ServiceInitState:
        """Return a snapshot of the initialization state."""
        return self._state

    # ---- internal ------------------------------------------------------------
    def _initialize_sync(self) -> CrudService:
        self._logger.info("Starting CrudService initialization…")
        database_url = ConfigService.get_database_url()
        fp = hashlib.sha256(database_url.encode("utf-8")).hexdigest()[:10]
        self._logger.debug("Using database fingerprint: %s", fp)

        engine = ConfigService.create_database_engine(database_url)
        with engine.connect() as conn:
            conn.execute(sa.text("SELECT 1"))

        service = CrudService(
            engine,
            provider=SchemaProvider(
                engine, soft_delete_columns=ConfigService.soft_delete_columns()
            ),
            executor=SqlAlchemyExecutor(engine),
            style=SqlStyle.for_sqlalchemy(engine.dialect.name),
            max_page_size=ConfigService.max_page_size(),
            fk_options_limit=ConfigService.fk_options_limit(),
        )
        self._logger.info("CrudService ready (dialect=%s)", engine.dialect.name)
        return service
