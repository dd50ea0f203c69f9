"""Data model for review metadata and render options."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .config import settings
from .errors import ErrorCode, ValidationError

EMBEDDED_IMAGE_PREFIX = "data:"

MIN_FONT_SCALE = 50
MAX_FONT_SCALE = 150
DEFAULT_FONT_SCALE = 100


def is_embedded_image(value: Optional[str]) -> bool:
    """True when the value is already an inline data: URI payload."""
    return bool(value) and value.startswith(EMBEDDED_IMAGE_PREFIX)


class SizePreset(Enum):
    """Output image size presets."""

    SQUARE = "square"
    PORTRAIT = "portrait"
    STORY = "story"

    @property
    def dimensions(self) -> tuple[int, int]:
        """(width, height) in CSS pixels."""
        return SIZE_DIMENSIONS[self]

    @property
    def description(self) -> str:
        return PRESET_DESCRIPTIONS[self]

    @classmethod
    def parse(cls, value: "str | SizePreset") -> "SizePreset":
        """Parse a preset name, raising INVALID_PRESET for unknown values."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            valid = ", ".join(p.value for p in cls)
            raise ValidationError(
                ErrorCode.INVALID_PRESET,
                "Invalid preset",
                f"Valid presets are: {valid}",
            ) from None


SIZE_DIMENSIONS = {
    SizePreset.SQUARE: (1080, 1080),
    SizePreset.PORTRAIT: (1080, 1350),
    SizePreset.STORY: (1080, 1920),
}

PRESET_DESCRIPTIONS = {
    SizePreset.SQUARE: "Perfect for Instagram posts (1:1 ratio)",
    SizePreset.PORTRAIT: "Ideal for Instagram/Facebook posts (4:5 ratio)",
    SizePreset.STORY: "Optimized for Stories and TikTok (9:16 ratio)",
}


class CardStyle(Enum):
    """Card layout variants."""

    CLASSIC = "classic"
    CINEMATIC = "cinematic"

    @classmethod
    def parse(cls, value: "str | CardStyle | None") -> "CardStyle":
        """Parse a style name; unknown or empty values fall back to classic."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value or "").strip().lower())
        except ValueError:
            return cls.CLASSIC


@dataclass
class ReviewMetadata:
    """Structured metadata extracted from a review page."""

    film_title: str
    author_name: str
    author_username: str
    film_year: Optional[int] = None
    avatar_url: Optional[str] = None
    rating: Optional[float] = None
    liked: bool = False
    watched_date: Optional[str] = None
    review_text: Optional[str] = None
    spoiler: bool = False
    poster_url: Optional[str] = None
    review_url: Optional[str] = None

    @property
    def has_poster(self) -> bool:
        return bool(self.poster_url)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization (wire keys)."""
        return {
            "filmTitle": self.film_title,
            "filmYear": self.film_year,
            "authorName": self.author_name,
            "authorUsername": self.author_username,
            "avatarUrl": self.avatar_url,
            "rating": self.rating,
            "liked": self.liked,
            "watchedDate": self.watched_date,
            "reviewText": self.review_text,
            "spoiler": self.spoiler,
            "posterUrl": self.poster_url,
            "reviewUrl": self.review_url,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ReviewMetadata":
        """Create from dictionary."""
        return cls(
            film_title=data.get("filmTitle") or "Unknown Film",
            film_year=data.get("filmYear"),
            author_name=data.get("authorName", ""),
            author_username=data.get("authorUsername", ""),
            avatar_url=data.get("avatarUrl"),
            rating=data.get("rating"),
            liked=bool(data.get("liked", False)),
            watched_date=data.get("watchedDate"),
            review_text=data.get("reviewText"),
            spoiler=bool(data.get("spoiler", False)),
            poster_url=data.get("posterUrl"),
            review_url=data.get("reviewUrl"),
        )


@dataclass
class MetadataSummary:
    """Lightweight metadata fetch result; never carries embedded image payloads."""

    session_id: str
    film_title: str
    author_username: str
    film_year: Optional[int] = None
    has_poster: bool = False

    @classmethod
    def from_metadata(cls, session_id: str, metadata: ReviewMetadata) -> "MetadataSummary":
        return cls(
            session_id=session_id,
            film_title=metadata.film_title,
            film_year=metadata.film_year,
            author_username=metadata.author_username,
            has_poster=metadata.has_poster,
        )

    def to_dict(self) -> dict:
        return {
            "sessionId": self.session_id,
            "filmTitle": self.film_title,
            "filmYear": self.film_year,
            "authorUsername": self.author_username,
            "hasPoster": self.has_poster,
        }


@dataclass(frozen=True)
class RenderOptions:
    """Cosmetic render options; everything here is part of the image cache key."""

    preset: SizePreset = SizePreset.SQUARE
    font_scale: int = DEFAULT_FONT_SCALE
    style: CardStyle = CardStyle.CLASSIC
    template_version: str = field(default_factory=lambda: settings.template_version)

    @classmethod
    def build(
        cls,
        preset: "str | SizePreset" = SizePreset.SQUARE,
        font_scale: Optional[int] = None,
        style: "str | CardStyle | None" = None,
        template_version: Optional[str] = None,
    ) -> "RenderOptions":
        """Validate and normalize raw request values."""
        return cls(
            preset=SizePreset.parse(preset),
            font_scale=clamp_font_scale(font_scale),
            style=CardStyle.parse(style),
            template_version=template_version or settings.template_version,
        )

    @property
    def font_multiplier(self) -> float:
        return self.font_scale / 100

    def serialize(self) -> str:
        """Stable string form of the style options, independent of call order."""
        return f"{self.preset.value}-{self.font_scale}-{self.style.value}"


def clamp_font_scale(value: Optional[int]) -> int:
    """Clamp a font-scale percentage into [50, 150]; None and junk mean default."""
    if value is None:
        return DEFAULT_FONT_SCALE
    try:
        scale = int(value)
    except (TypeError, ValueError):
        return DEFAULT_FONT_SCALE
    return max(MIN_FONT_SCALE, min(MAX_FONT_SCALE, scale))
