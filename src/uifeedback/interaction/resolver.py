"""Pick the surface a request acts on."""

from dataclasses import dataclass

from uifeedback.errors import (
    AmbiguousSurfaceError,
    SessionNotFoundError,
    SurfaceNotFoundError,
)
from uifeedback.session.models import SurfaceRef
from uifeedback.session.registry import SessionRegistry


@dataclass
class ResolvedSurface:
    surface: SurfaceRef
    identifier: str

    @property
    def page(self):
        return self.surface.page


def resolve_surface(
    registry: SessionRegistry, session_id: str, identifier: str | None = None
) -> ResolvedSurface:
    """Find the surface for ``identifier``, or the only surface when omitted.

    Raises SessionNotFoundError, SurfaceNotFoundError (zero surfaces or an
    unknown identifier) or AmbiguousSurfaceError (several surfaces and no
    identifier). The latter two carry the open identifiers in ``available``.
    """
    if registry.get(session_id) is None:
        raise SessionNotFoundError(session_id, registry.list_sessions())

    available = registry.get_surface_identifiers(session_id)

    if identifier:
        ref = registry.get_surface_ref(session_id, identifier)
        if ref is None:
            raise SurfaceNotFoundError(f"Page not found: {identifier}", available)
        return ResolvedSurface(ref, identifier)

    if not available:
        raise SurfaceNotFoundError(
            "No pages available in this session. Launch an app first with "
            "launch_web_server, launch_electron, or screenshot_web."
        )

    if len(available) == 1:
        only = available[0]
        return ResolvedSurface(registry.get_surface_ref(session_id, only), only)

    raise AmbiguousSurfaceError(
        f"Multiple pages found ({len(available)}). "
        "Specify page_identifier to target a specific page.",
        available,
    )
