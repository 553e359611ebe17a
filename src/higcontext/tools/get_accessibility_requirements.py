"""Tool handler for get_accessibility_requirements."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from higcontext.errors import ErrorCode, HigContextError
from higcontext.models.tools import (
    GetAccessibilityRequirementsInput,
    GetAccessibilityRequirementsOutput,
)
from higcontext.tools.search_guidelines import to_search_hit

if TYPE_CHECKING:
    from higcontext.state import AppState

# Guideline sections listed next to the requirements
_RELATED_LIMIT = 3


async def handle(component: str, platform: str, state: AppState) -> dict:
    """Handle a get_accessibility_requirements tool call."""
    log = structlog.get_logger().bind(tool="get_accessibility_requirements", component=component)
    log.info("handler_called", platform=platform)

    try:
        validated = GetAccessibilityRequirementsInput(component=component, platform=platform)
    except ValueError as exc:
        raise HigContextError(
            code=ErrorCode.INVALID_INPUT,
            message=str(exc),
            suggestion=(
                "Provide a component name and a platform "
                "(iOS, macOS, watchOS, tvOS, visionOS)."
            ),
            recoverable=False,
        ) from exc

    requirements = state.reference.accessibility(validated.component)
    response = state.engine.search(
        f"{validated.component} accessibility",
        platform=validated.platform,
        limit=_RELATED_LIMIT,
    )

    output = GetAccessibilityRequirementsOutput(
        component=validated.component,
        platform=validated.platform,
        requirements=requirements,
        matched=state.reference.resolve(validated.component) is not None,
        related=[to_search_hit(r.section, r.score) for r in response.results],
        method=response.method,
    )
    log.info(
        "accessibility_requirements_complete",
        matched=output.matched,
        related=len(output.related),
    )
    return output.model_dump(mode="json")
