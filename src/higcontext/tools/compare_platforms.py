"""Tool handler for compare_platforms."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from higcontext.errors import ErrorCode, HigContextError
from higcontext.models.tools import ComparePlatformsInput, ComparePlatformsOutput
from higcontext.tools.get_component_spec import to_component_spec

if TYPE_CHECKING:
    from higcontext.state import AppState


async def handle(component_name: str, platforms: list[str], state: AppState) -> dict:
    """Handle a compare_platforms tool call."""
    log = structlog.get_logger().bind(tool="compare_platforms", component_name=component_name)
    log.info("handler_called", platforms=platforms)

    try:
        validated = ComparePlatformsInput(component_name=component_name, platforms=platforms)
    except ValueError as exc:
        raise HigContextError(
            code=ErrorCode.INVALID_INPUT,
            message=str(exc),
            suggestion=(
                "Provide a component name and two to five distinct platforms "
                "(iOS, macOS, watchOS, tvOS, visionOS)."
            ),
            recoverable=False,
        ) from exc

    comparison = state.engine.compare_platforms(validated.component_name, validated.platforms)

    output = ComparePlatformsOutput(
        component_name=validated.component_name,
        by_platform={
            str(platform): to_component_spec(section) if section else None
            for platform, section in comparison.by_platform.items()
        },
        method=comparison.method,
    )
    return output.model_dump(mode="json")
