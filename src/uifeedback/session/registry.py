"""Session registry - sessions, surfaces, collectors and their teardown."""

import logging
from typing import Generic, Literal, TypeVar

from uifeedback.capture.base import Collector
from uifeedback.capture.models import (
    ConsoleEntry,
    ErrorEntry,
    NetworkEntry,
    ProcessOutputEntry,
)
from uifeedback.errors import SessionNotFoundError
from uifeedback.session.models import AutoCapture, Resource, Session, SurfaceRef

logger = logging.getLogger(__name__)

CollectorKind = Literal["console", "error", "network", "process"]
COLLECTOR_KINDS: tuple[CollectorKind, ...] = ("console", "error", "network", "process")

V = TypeVar("V")


class KeyedMap(Generic[V]):
    """Values keyed by (session_id, identifier), stored per session."""

    def __init__(self) -> None:
        self._data: dict[str, dict[str, V]] = {}

    def set(self, session_id: str, identifier: str, value: V) -> None:
        self._data.setdefault(session_id, {})[identifier] = value

    def get(self, session_id: str, identifier: str) -> V | None:
        return self._data.get(session_id, {}).get(identifier)

    def values(self, session_id: str) -> list[V]:
        return list(self._data.get(session_id, {}).values())

    def identifiers(self, session_id: str) -> list[str]:
        return list(self._data.get(session_id, {}))

    def remove(self, session_id: str, identifier: str) -> V | None:
        inner = self._data.get(session_id)
        if inner is None:
            return None
        value = inner.pop(identifier, None)
        if not inner:
            del self._data[session_id]
        return value

    def move(self, session_id: str, old: str, new: str) -> tuple[bool, V | None]:
        """Move ``old`` to ``new``; returns (moved, value displaced from ``new``)."""
        inner = self._data.get(session_id)
        if inner is None or old not in inner:
            return False, None
        displaced = inner.get(new)
        inner[new] = inner.pop(old)
        return True, displaced

    def pop_session(self, session_id: str) -> dict[str, V]:
        return self._data.pop(session_id, {})


async def close_surface(ref: SurfaceRef) -> None:
    try:
        if ref.context is not None:
            await ref.context.close()
    finally:
        if ref.browser is not None:
            await ref.browser.close()


class SessionRegistry:
    """Owns every session and the per-session state keyed by identifier.

    One instance is created per server and handed to the tool handlers.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}
        self._surfaces: KeyedMap[SurfaceRef] = KeyedMap()
        self._auto_captures: dict[str, AutoCapture] = {}
        self._destroying: set[str] = set()
        self._collectors: dict[CollectorKind, KeyedMap[Collector]] = {
            kind: KeyedMap() for kind in COLLECTOR_KINDS
        }

    # ── Sessions ─────────────────────────────────────────────────

    def create(self) -> str:
        session = Session()
        self._sessions[session.id] = session
        logger.info("Session created: %s", session.id)
        return session.id

    def get(self, session_id: str) -> Session | None:
        return self._sessions.get(session_id)

    def list_sessions(self) -> list[str]:
        return list(self._sessions)

    def _require(self, session_id: str) -> Session:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id, self.list_sessions())
        return session

    def add_resource(self, session_id: str, resource: Resource) -> None:
        self._require(session_id).resources.append(resource)

    # ── Surfaces ─────────────────────────────────────────────────

    def set_surface_ref(self, session_id: str, identifier: str, ref: SurfaceRef) -> None:
        self._require(session_id)
        self._surfaces.set(session_id, identifier, ref)

    def get_surface_ref(self, session_id: str, identifier: str) -> SurfaceRef | None:
        return self._surfaces.get(session_id, identifier)

    def get_surface_refs(self, session_id: str) -> list[SurfaceRef]:
        return self._surfaces.values(session_id)

    def get_surface_identifiers(self, session_id: str) -> list[str]:
        return self._surfaces.identifiers(session_id)

    def remove_surface_ref(self, session_id: str, identifier: str) -> None:
        self._surfaces.remove(session_id, identifier)

    def rekey_identifier(self, session_id: str, old: str, new: str) -> None:
        """Move the surface and every collector keyed under ``old`` to ``new``.

        Maps without an entry under ``old`` are left alone. Runs without
        awaiting, so no other request observes a half-moved state.
        """
        if old == new:
            return
        moved, displaced_ref = self._surfaces.move(session_id, old, new)
        if displaced_ref is not None and session_id in self._sessions:
            # The surface previously at ``new`` is no longer reachable by key;
            # its browser is released with the session.
            self._sessions[session_id].resources.append(
                Resource(release=lambda: close_surface(displaced_ref), label=f"surface {new}")
            )
        for kind in COLLECTOR_KINDS:
            kind_moved, displaced = self._collectors[kind].move(session_id, old, new)
            if displaced is not None:
                displaced.detach()
            moved = moved or kind_moved
        if moved:
            logger.debug("Re-keyed %s -> %s in session %s", old, new, session_id)

    # ── Auto-capture ─────────────────────────────────────────────

    def set_auto_capture(self, session_id: str, capture: AutoCapture) -> None:
        self._auto_captures[session_id] = capture

    def get_auto_capture(self, session_id: str) -> AutoCapture | None:
        return self._auto_captures.get(session_id)

    # ── Collectors ───────────────────────────────────────────────

    def set_collector(
        self, kind: CollectorKind, session_id: str, identifier: str, collector: Collector
    ) -> None:
        self._require(session_id)
        self._collectors[kind].set(session_id, identifier, collector)

    def get_collector(
        self, kind: CollectorKind, session_id: str, identifier: str
    ) -> Collector | None:
        return self._collectors[kind].get(session_id, identifier)

    def get_collectors(self, kind: CollectorKind, session_id: str) -> list[Collector]:
        return self._collectors[kind].values(session_id)

    def set_console_collector(
        self, session_id: str, identifier: str, collector: Collector[ConsoleEntry]
    ) -> None:
        self.set_collector("console", session_id, identifier, collector)

    def get_console_collector(
        self, session_id: str, identifier: str
    ) -> Collector[ConsoleEntry] | None:
        return self.get_collector("console", session_id, identifier)

    def get_console_collectors(self, session_id: str) -> list[Collector[ConsoleEntry]]:
        return self.get_collectors("console", session_id)

    def set_error_collector(
        self, session_id: str, identifier: str, collector: Collector[ErrorEntry]
    ) -> None:
        self.set_collector("error", session_id, identifier, collector)

    def get_error_collector(
        self, session_id: str, identifier: str
    ) -> Collector[ErrorEntry] | None:
        return self.get_collector("error", session_id, identifier)

    def get_error_collectors(self, session_id: str) -> list[Collector[ErrorEntry]]:
        return self.get_collectors("error", session_id)

    def set_network_collector(
        self, session_id: str, identifier: str, collector: Collector[NetworkEntry]
    ) -> None:
        self.set_collector("network", session_id, identifier, collector)

    def get_network_collector(
        self, session_id: str, identifier: str
    ) -> Collector[NetworkEntry] | None:
        return self.get_collector("network", session_id, identifier)

    def get_network_collectors(self, session_id: str) -> list[Collector[NetworkEntry]]:
        return self.get_collectors("network", session_id)

    def set_process_collector(
        self, session_id: str, identifier: str, collector: Collector[ProcessOutputEntry]
    ) -> None:
        self.set_collector("process", session_id, identifier, collector)

    def get_process_collector(
        self, session_id: str, identifier: str
    ) -> Collector[ProcessOutputEntry] | None:
        return self.get_collector("process", session_id, identifier)

    def get_process_collectors(
        self, session_id: str
    ) -> list[Collector[ProcessOutputEntry]]:
        return self.get_collectors("process", session_id)

    # ── Teardown ─────────────────────────────────────────────────

    async def destroy(self, session_id: str) -> None:
        """End a session, releasing everything it owns.

        Each phase visits every item even when earlier items fail; failures
        are logged and never raised. Unknown ids are ignored.
        """
        session = self._sessions.get(session_id)
        if session is None or session_id in self._destroying:
            return
        self._destroying.add(session_id)
        try:
            await self._teardown(session)
        finally:
            self._destroying.discard(session_id)
            self._sessions.pop(session_id, None)
        logger.info("Session destroyed: %s", session_id)

    async def _teardown(self, session: Session) -> None:
        session_id = session.id
        logger.info(
            "Destroying session %s (%d resources)", session_id, len(session.resources)
        )

        for identifier, ref in self._surfaces.pop_session(session_id).items():
            try:
                await close_surface(ref)
            except Exception:
                logger.exception(
                    "Error closing surface %s in session %s", identifier, session_id
                )

        for kind in COLLECTOR_KINDS:
            for identifier, collector in self._collectors[kind].pop_session(session_id).items():
                try:
                    collector.detach()
                except Exception:
                    logger.exception(
                        "Error detaching %s collector %s in session %s",
                        kind,
                        identifier,
                        session_id,
                    )

        self._auto_captures.pop(session_id, None)

        for resource in session.resources:
            try:
                await resource.release()
            except Exception:
                logger.exception(
                    "Error releasing %s in session %s", resource.label, session_id
                )

    async def destroy_all(self) -> None:
        session_ids = self.list_sessions()
        logger.info("Destroying all sessions (%d total)", len(session_ids))
        for session_id in session_ids:
            await self.destroy(session_id)
