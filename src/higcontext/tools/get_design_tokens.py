"""Tool handler for get_design_tokens.

Tokens come from the component reference data. When a guideline section
names the component, its specifications table rides along.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from higcontext.errors import ErrorCode, HigContextError
from higcontext.models.tools import GetDesignTokensInput, GetDesignTokensOutput

if TYPE_CHECKING:
    from higcontext.state import AppState


async def handle(
    component: str,
    platform: str,
    state: AppState,
    token_type: str = "all",
) -> dict:
    """Handle a get_design_tokens tool call."""
    log = structlog.get_logger().bind(tool="get_design_tokens", component=component)
    log.info("handler_called", platform=platform, token_type=token_type)

    try:
        validated = GetDesignTokensInput(
            component=component, platform=platform, token_type=token_type
        )
    except ValueError as exc:
        raise HigContextError(
            code=ErrorCode.INVALID_INPUT,
            message=str(exc),
            suggestion=(
                "Provide a component name, a platform (iOS, macOS, watchOS, tvOS, "
                "visionOS) and a token type (colors, spacing, typography, dimensions, all)."
            ),
            recoverable=False,
        ) from exc

    reference = state.reference
    tokens = reference.design_tokens(validated.component, validated.platform, validated.token_type)

    spec = state.engine.get_component_spec(validated.component, validated.platform)
    section = spec.best_match
    specifications: dict[str, str] = {}
    if section is not None and section.structured_content is not None:
        specifications = dict(section.structured_content.specifications)

    output = GetDesignTokensOutput(
        component=validated.component,
        platform=validated.platform,
        tokens=tokens,
        matched=reference.resolve(validated.component) is not None,
        section_id=section.id if section is not None else None,
        specifications=specifications,
    )
    log.info("design_tokens_complete", matched=output.matched, groups=sorted(tokens))
    return output.model_dump(mode="json")
