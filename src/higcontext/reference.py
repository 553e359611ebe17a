"""Per-component reference data: design tokens and accessibility requirements.

Like the lexicon, the reference is data. The bundled ``data/components.yaml``
is used unless ``search.components_path`` points at a replacement file.
"""

from __future__ import annotations

from functools import cached_property
from importlib import resources
from pathlib import Path

import structlog
import yaml
from pydantic import BaseModel, ConfigDict, Field

from higcontext.models.reference import (
    AccessibilityRequirements,
    ComponentEntry,
    TokenGroups,
    TokenType,
)
from higcontext.models.section import Platform
from higcontext.text import normalise_text, stem

log = structlog.get_logger()


_GROUPS = (TokenType.COLORS, TokenType.SPACING, TokenType.TYPOGRAPHY, TokenType.DIMENSIONS)


class ComponentReference(BaseModel):
    model_config = ConfigDict(frozen=True)

    palettes: dict[Platform, dict[str, str]] = {}
    accessibility_baseline: AccessibilityRequirements = AccessibilityRequirements()
    default: ComponentEntry = ComponentEntry()
    components: dict[str, ComponentEntry] = Field(default_factory=dict)

    @cached_property
    def name_index(self) -> dict[str, str]:
        """Normalised name, alias or stem -> component key."""
        names: dict[str, str] = {}
        for key, entry in self.components.items():
            for name in (key, *entry.aliases):
                normalised = normalise_text(name)
                names[normalised] = key
                names.setdefault(stem(normalised), key)
        return names

    def resolve(self, component: str) -> str | None:
        """The component key for ``component`` ("Buttons", "tab"), or None."""
        normalised = normalise_text(component)
        return self.name_index.get(normalised) or self.name_index.get(stem(normalised))

    def design_tokens(
        self,
        component: str,
        platform: Platform,
        token_type: TokenType = TokenType.ALL,
    ) -> dict[str, dict[str, str]]:
        key = self.resolve(component)
        entry = self.components[key] if key is not None else self.default
        palette = self.palettes.get(platform) or self.palettes.get(Platform.IOS, {})
        override = entry.platforms.get(platform, TokenGroups())

        groups: dict[str, dict[str, str]] = {}
        wanted = _GROUPS if token_type is TokenType.ALL else (token_type,)
        for group in wanted:
            values = {**getattr(entry.tokens, group), **getattr(override, group)}
            if group is TokenType.COLORS:
                # Colors name palette roles; an unknown role is kept as written
                values = {name: palette.get(role, role) for name, role in values.items()}
            groups[group.value] = values
        return groups

    def accessibility(self, component: str) -> AccessibilityRequirements:
        key = self.resolve(component)
        entry = self.components[key] if key is not None else self.default
        return self.accessibility_baseline.model_copy(update=entry.accessibility)


def load_component_reference(path: str | Path | None = None) -> ComponentReference:
    """Load the component reference from ``path`` or from the bundled data file."""
    if path is None:
        raw = resources.files("higcontext").joinpath("data/components.yaml").read_text("utf-8")
        source = "bundled"
    else:
        raw = Path(path).expanduser().read_text(encoding="utf-8")
        source = str(path)

    reference = ComponentReference.model_validate(yaml.safe_load(raw) or {})
    log.debug("component_reference_loaded", source=source, components=len(reference.components))
    return reference
