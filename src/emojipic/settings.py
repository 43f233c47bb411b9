from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from enum import Enum
from typing import Any


class Mode(str, Enum):
    PICTOGRAPHIC = "pictographic"
    CHARACTER_GLYPH = "character-glyph"
    CHARACTER_RAMP = "character-ramp"


class Quality(str, Enum):
    PERFORMANCE = "performance"
    HIGH = "high"


class DeviceMode(str, Enum):
    MOBILE = "mobile"
    DESKTOP = "desktop"


class RenderStyle(str, Enum):
    ASCII = "ascii"
    BLOCK = "block"
    BRAILLE = "braille"
    SYMBOL = "symbol"


@dataclass(frozen=True)
class PlatformPreset:
    name: str
    glyph_width: int | None = None
    ramp_width: int | None = None
    collapses_whitespace: bool = False


PLATFORMS: dict[str, PlatformPreset] = {
    "standard": PlatformPreset("Standard"),
    "instagram": PlatformPreset("Instagram", 40, 40, collapses_whitespace=True),
    "whatsapp": PlatformPreset("WhatsApp", 33, 33),
    "facebook": PlatformPreset("Facebook", 50, 42),
    "youtube": PlatformPreset("YouTube", 60, 60, collapses_whitespace=True),
    "snapchat": PlatformPreset("Snapchat", 30, 32),
}

# camelCase keys as sent by a browser controller
_ALIASES = {
    "platformWidth": "platform_width",
    "deviceMode": "device_mode",
    "renderStyle": "render_style",
    "colorEnhancement": "color_enhancement",
}


@dataclass(frozen=True)
class Settings:
    density: int = 10
    quality: Quality = Quality.HIGH
    platform: str = "standard"
    platform_width: int | None = None
    device_mode: DeviceMode = DeviceMode.MOBILE
    render_style: RenderStyle = RenderStyle.ASCII
    watermark: bool = False
    # Consumed by display compositing downstream, not by sampling or matching
    color_enhancement: float = 0.0
    randomness: float = 0.0
    contrast: float = 1.0

    def __post_init__(self):
        # Accept plain strings for the enum fields
        object.__setattr__(self, "quality", Quality(self.quality))
        object.__setattr__(self, "device_mode", DeviceMode(self.device_mode))
        object.__setattr__(self, "render_style", RenderStyle(self.render_style))

        if isinstance(self.density, bool) or not isinstance(self.density, int) or self.density < 1:
            raise ValueError(f"density must be a positive integer, got {self.density!r}")
        if self.platform_width is not None and (
            isinstance(self.platform_width, bool) or not isinstance(self.platform_width, int) or self.platform_width < 1
        ):
            raise ValueError(f"platform_width must be a positive integer, got {self.platform_width!r}")
        if self.platform not in PLATFORMS:
            raise ValueError(f"Unknown platform: {self.platform!r} (expected one of {', '.join(sorted(PLATFORMS))})")
        for name in ("color_enhancement", "randomness"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be between 0 and 1, got {value!r}")
        if self.contrast <= 0:
            raise ValueError(f"contrast must be positive, got {self.contrast!r}")

    @property
    def preset(self) -> PlatformPreset:
        return PLATFORMS[self.platform]

    @property
    def collapses_whitespace(self) -> bool:
        return self.preset.collapses_whitespace

    def replace(self, **changes: Any) -> Settings:
        return dataclasses.replace(self, **changes)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Settings:
        """Build settings from a controller payload, accepting camelCase or snake_case keys."""
        known = {f.name for f in dataclasses.fields(cls)}
        kwargs = {}
        for key, value in data.items():
            name = _ALIASES.get(key, key)
            if name not in known:
                raise ValueError(f"Unknown setting: {key!r}")
            kwargs[name] = value
        return cls(**kwargs)
