"""Feature toggle records persisted as each target's config.json.

Only the documented keys are ever written; `to_payload()` is the single source
of the on-disk key set and its order.
"""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import Any, ClassVar, Literal, Mapping, Union

from anti_power.domain.errors import ConfigParseError

CopyButtonBottom = Literal["float", "feedback"]
CopyButtonStyle = Literal["arrow", "icon", "chinese", "custom"]

COPY_BUTTON_BOTTOM_VALUES: tuple[str, ...] = ("float", "feedback")
COPY_BUTTON_STYLE_VALUES: tuple[str, ...] = ("arrow", "icon", "chinese", "custom")

_ENUM_FIELDS: dict[str, tuple[str, ...]] = {
    "copy_button_show_bottom": COPY_BUTTON_BOTTOM_VALUES,
    "copy_button_style": COPY_BUTTON_STYLE_VALUES,
}


def _camel(name: str) -> str:
    head, *tail = name.split("_")
    return head + "".join(part.capitalize() for part in tail)


def _coerce(field_name: str, raw: Any, default: Any) -> Any:
    key = _camel(field_name)
    if isinstance(default, bool):
        if not isinstance(raw, bool):
            raise ConfigParseError(f"{key}: expected boolean, got {raw!r}")
        return raw
    if isinstance(default, float):
        # bool is an int subclass; reject it explicitly.
        if isinstance(raw, bool) or not isinstance(raw, (int, float)):
            raise ConfigParseError(f"{key}: expected number, got {raw!r}")
        return float(raw)
    if not isinstance(raw, str):
        raise ConfigParseError(f"{key}: expected string, got {raw!r}")
    allowed = _ENUM_FIELDS.get(field_name)
    if allowed is not None and raw not in allowed:
        raise ConfigParseError(f"{key}: {raw!r} is not one of {', '.join(allowed)}")
    return raw


class _FeatureConfigBase:
    kind: ClassVar[str]

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]):
        """Build a record from camelCase keys; missing keys keep their defaults."""

        if not isinstance(payload, Mapping):
            raise ConfigParseError(f"{cls.kind} config must be a JSON object")
        defaults = cls()
        values: dict[str, Any] = {}
        for f in fields(cls):  # type: ignore[arg-type]
            key = _camel(f.name)
            if key in payload:
                values[f.name] = _coerce(f.name, payload[key], getattr(defaults, f.name))
        return replace(defaults, **values)  # type: ignore[type-var]

    def to_payload(self) -> dict[str, Any]:
        return {_camel(f.name): getattr(self, f.name) for f in fields(self)}  # type: ignore[arg-type]


@dataclass(frozen=True)
class SidebarFeatureConfig(_FeatureConfigBase):
    """Toggles for the cascade (sidebar) panel."""

    kind: ClassVar[str] = "cascade"

    enabled: bool = True
    mermaid: bool = True
    math: bool = True
    copy_button: bool = True
    table_color: bool = True
    font_size_enabled: bool = True
    font_size: float = 20.0
    copy_button_smart_hover: bool = False
    copy_button_show_bottom: str = "float"
    copy_button_style: str = "arrow"
    copy_button_custom_text: str = ""

    def __post_init__(self) -> None:
        _validate_enums(self)


@dataclass(frozen=True)
class ManagerFeatureConfig(_FeatureConfigBase):
    """Toggles for the manager window panel."""

    kind: ClassVar[str] = "manager"

    enabled: bool = True
    mermaid: bool = False
    math: bool = False
    copy_button: bool = True
    font_size_enabled: bool = False
    font_size: float = 16.0
    copy_button_smart_hover: bool = False
    copy_button_show_bottom: str = "float"
    copy_button_style: str = "arrow"
    copy_button_custom_text: str = ""

    def __post_init__(self) -> None:
        _validate_enums(self)


FeatureConfig = Union[SidebarFeatureConfig, ManagerFeatureConfig]

CONFIG_TYPES: dict[str, type] = {
    SidebarFeatureConfig.kind: SidebarFeatureConfig,
    ManagerFeatureConfig.kind: ManagerFeatureConfig,
}


def _validate_enums(config: Any) -> None:
    for name, allowed in _ENUM_FIELDS.items():
        value = getattr(config, name)
        if value not in allowed:
            raise ValueError(f"{_camel(name)} must be one of {', '.join(allowed)}; got {value!r}")
