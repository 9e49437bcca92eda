"""
Record Models - Canonical schema for catalog entries.

A Record describes one AI model: identity, provenance, license, hosting,
commercial facts and the user-managed flags. Records are plain data; all
behaviour lives in the codec, merge and validation packages.

User flags (is_favorite, is_nsfw_flagged, flagged_image_urls) are set only by
the user. Automated enrichment and validation must never change them.
"""

from __future__ import annotations

import copy
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)


def _enum_key(value: str) -> str:
    return re.sub(r"[^a-z0-9]", "", value.lower())


class _LenientEnum(str, Enum):
    """String enum that parses loosely ("world/sim" -> WorldSim)."""

    @classmethod
    def parse(cls, value: Any, default: "_LenientEnum") -> "_LenientEnum":
        if isinstance(value, cls):
            return value
        if value is None:
            return default
        key = _enum_key(str(value))
        if not key:
            return default
        for member in cls:
            if _enum_key(member.value) == key:
                return member
        return default


class Domain(_LenientEnum):
    """AI model domains."""
    LLM = "LLM"
    VLM = "VLM"
    IMAGE_GEN = "ImageGen"
    VIDEO_GEN = "VideoGen"
    AUDIO = "Audio"
    ASR = "ASR"
    TTS = "TTS"
    THREE_D = "3D"
    WORLD_SIM = "WorldSim"
    LORA = "LoRA"
    FINE_TUNE = "FineTune"
    BACKGROUND_REMOVAL = "BackgroundRemoval"
    UPSCALER = "Upscaler"
    OTHER = "Other"


class LicenseType(_LenientEnum):
    """License families."""
    OSI = "OSI"
    COPYLEFT = "Copyleft"
    NON_COMMERCIAL = "Non-Commercial"
    CUSTOM = "Custom"
    PROPRIETARY = "Proprietary"


class Indemnity(_LenientEnum):
    """Vendor indemnity programs."""
    NONE = "None"
    VENDOR_PROGRAM = "VendorProgram"
    ENTERPRISE_ONLY = "EnterpriseOnly"
    UNKNOWN = "Unknown"


# Fields owned by the user; never taken from enrichment or validation output.
USER_FLAG_FIELDS = ("is_favorite", "is_nsfw_flagged", "flagged_image_urls")


# =============================================================================
# COERCION HELPERS
# =============================================================================

def coerce_bool(value: Any, default: bool = False) -> bool:
    """Parse booleans from JSON, tabular text ("true"/"yes"/"1") or None."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    text = str(value).strip().lower()
    if not text:
        return default
    if text in ("true", "yes", "y", "1"):
        return True
    if text in ("false", "no", "n", "0"):
        return False
    return default


def coerce_str(value: Any) -> Optional[str]:
    """Return a stripped string, or None for empty values."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def coerce_float(value: Any) -> Optional[float]:
    """Parse a price-like number ("$1,200.50" -> 1200.5)."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    text = re.sub(r"[^0-9.eE+-]", "", str(value))
    if not text:
        return None
    try:
        return float(text)
    except ValueError:
        return None


def coerce_int(value: Any) -> Optional[int]:
    """Parse integer counts ("1,234" -> 1234)."""
    number = coerce_float(value)
    if number is None:
        return None
    return int(number)


def coerce_str_list(value: Any, separator: str = ";") -> List[str]:
    """Accept lists or separator-joined strings; drop blanks."""
    if value is None:
        return []
    if isinstance(value, str):
        items: Iterable[Any] = value.split(separator)
    elif isinstance(value, (list, tuple, set)):
        items = value
    else:
        items = [value]
    out = []
    for item in items:
        text = coerce_str(item)
        if text:
            out.append(text)
    return out


def union_ci(*groups: Iterable[str]) -> List[str]:
    """
    Union string lists, de-duplicating case-insensitively.

    The first casing seen is kept, and insertion order is preserved.
    """
    seen = set()
    out: List[str] = []
    for group in groups:
        for item in group or []:
            if item is None:
                continue
            key = str(item).strip().lower()
            if not key or key in seen:
                continue
            seen.add(key)
            out.append(item)
    return out


# =============================================================================
# SUB-OBJECTS
# =============================================================================

@dataclass
class LicenseInfo:
    """License terms of a model."""
    name: str = ""
    type: LicenseType = LicenseType.CUSTOM
    commercial_use: bool = False
    attribution_required: bool = False
    share_alike: bool = False
    copyleft: bool = False
    url: Optional[str] = None
    notes: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type.value,
            "commercial_use": self.commercial_use,
            "attribution_required": self.attribution_required,
            "share_alike": self.share_alike,
            "copyleft": self.copyleft,
            "url": self.url,
            "notes": self.notes,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "LicenseInfo":
        data = data or {}
        return cls(
            name=coerce_str(data.get("name")) or "",
            type=LicenseType.parse(data.get("type"), LicenseType.CUSTOM),
            commercial_use=coerce_bool(data.get("commercial_use")),
            attribution_required=coerce_bool(data.get("attribution_required")),
            share_alike=coerce_bool(data.get("share_alike")),
            copyleft=coerce_bool(data.get("copyleft")),
            url=coerce_str(data.get("url")),
            notes=coerce_str(data.get("notes")),
        )


@dataclass
class Hosting:
    """Where and how the model can be run."""
    weights_available: bool = False
    api_available: bool = False
    on_premise_friendly: bool = False
    providers: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "weights_available": self.weights_available,
            "api_available": self.api_available,
            "on_premise_friendly": self.on_premise_friendly,
            "providers": list(self.providers),
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]], default: bool = False) -> "Hosting":
        data = data or {}
        return cls(
            weights_available=coerce_bool(data.get("weights_available"), default),
            api_available=coerce_bool(data.get("api_available"), default),
            on_premise_friendly=coerce_bool(data.get("on_premise_friendly"), default),
            providers=union_ci(coerce_str_list(data.get("providers"))),
        )


@dataclass
class PricingEntry:
    """One pricing tier. Every field is independently optional."""
    model: Optional[str] = None
    unit: Optional[str] = None
    input: Optional[float] = None
    output: Optional[float] = None
    flat: Optional[float] = None
    currency: Optional[str] = None
    notes: Optional[str] = None
    url: Optional[str] = None

    def is_empty(self) -> bool:
        return all(
            getattr(self, name) in (None, "")
            for name in ("model", "unit", "input", "output", "flat", "currency", "notes", "url")
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "model": self.model,
            "unit": self.unit,
            "input": self.input,
            "output": self.output,
            "flat": self.flat,
            "currency": self.currency,
            "notes": self.notes,
            "url": self.url,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "PricingEntry":
        data = data or {}
        return cls(
            model=coerce_str(data.get("model")),
            unit=coerce_str(data.get("unit")),
            input=coerce_float(data.get("input")),
            output=coerce_float(data.get("output")),
            flat=coerce_float(data.get("flat")),
            currency=coerce_str(data.get("currency")),
            notes=coerce_str(data.get("notes")),
            url=coerce_str(data.get("url")),
        )


# =============================================================================
# RECORD
# =============================================================================

@dataclass
class Record:
    """A catalog entry describing one AI model."""
    id: str
    name: str = ""
    provider: Optional[str] = None
    domain: Domain = Domain.OTHER
    description: Optional[str] = None
    tags: List[str] = field(default_factory=list)

    # Provenance
    source: str = ""
    url: Optional[str] = None
    repo: Optional[str] = None

    license: LicenseInfo = field(default_factory=LicenseInfo)
    hosting: Hosting = field(default_factory=Hosting)

    # Commercial facts
    parameters: Optional[str] = None
    context_window: Optional[str] = None
    pricing: List[PricingEntry] = field(default_factory=list)

    release_date: Optional[str] = None
    updated_at: Optional[str] = None
    downloads: Optional[int] = None

    # User flags
    is_favorite: bool = False
    is_nsfw_flagged: bool = False
    flagged_image_urls: List[str] = field(default_factory=list)

    indemnity: Indemnity = Indemnity.NONE
    data_provenance: Optional[str] = None
    usage_restrictions: List[str] = field(default_factory=list)

    def copy(self) -> "Record":
        """Deep copy; callers may mutate the result freely."""
        return copy.deepcopy(self)

    def display_name(self) -> str:
        return self.name or self.id or "Unknown"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-compatible dict (user flags use camelCase keys)."""
        return {
            "id": self.id,
            "name": self.name,
            "provider": self.provider,
            "domain": self.domain.value,
            "description": self.description,
            "tags": list(self.tags),
            "source": self.source,
            "url": self.url,
            "repo": self.repo,
            "license": self.license.to_dict(),
            "hosting": self.hosting.to_dict(),
            "parameters": self.parameters,
            "context_window": self.context_window,
            "pricing": [p.to_dict() for p in self.pricing],
            "release_date": self.release_date,
            "updated_at": self.updated_at,
            "downloads": self.downloads,
            "isFavorite": self.is_favorite,
            "isNSFWFlagged": self.is_nsfw_flagged,
            "flaggedImageUrls": list(self.flagged_image_urls),
            "indemnity": self.indemnity.value,
            "data_provenance": self.data_provenance,
            "usage_restrictions": list(self.usage_restrictions),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], default_id: Optional[str] = None) -> "Record":
        """
        Build a Record from a loosely-shaped dict.

        Accepts nested sub-objects ({"license": {...}}) as well as the flat
        column names used by the tabular codec (license_name, pricing_input).
        """
        license_data = data.get("license")
        if not isinstance(license_data, dict):
            license_data = {
                "name": license_data if isinstance(license_data, str) else data.get("license_name"),
                "type": data.get("license_type"),
                "commercial_use": data.get("commercial_use"),
                "attribution_required": data.get("attribution_required"),
                "share_alike": data.get("share_alike"),
                "copyleft": data.get("copyleft"),
                "url": data.get("license_url"),
            }

        hosting_data = data.get("hosting")
        if not isinstance(hosting_data, dict):
            hosting_data = {
                "weights_available": data.get("weights_available"),
                "api_available": data.get("api_available"),
                "on_premise_friendly": data.get("on_premise_friendly"),
                "providers": data.get("hosting_providers"),
            }

        pricing_data = data.get("pricing")
        if isinstance(pricing_data, dict):
            pricing_data = [pricing_data]
        pricing = [
            PricingEntry.from_dict(p) for p in (pricing_data or []) if isinstance(p, dict)
        ]
        pricing = [p for p in pricing if not p.is_empty()]

        record_id = coerce_str(data.get("id")) or default_id or coerce_str(data.get("name")) or ""

        return cls(
            id=record_id,
            name=coerce_str(data.get("name")) or "",
            provider=coerce_str(data.get("provider")),
            domain=Domain.parse(data.get("domain"), Domain.OTHER),
            description=coerce_str(data.get("description")),
            tags=union_ci(coerce_str_list(data.get("tags"))),
            source=coerce_str(data.get("source")) or "",
            url=coerce_str(data.get("url")),
            repo=coerce_str(data.get("repo")),
            license=LicenseInfo.from_dict(license_data),
            hosting=Hosting.from_dict(hosting_data),
            parameters=coerce_str(data.get("parameters")),
            context_window=coerce_str(data.get("context_window")),
            pricing=pricing,
            release_date=coerce_str(data.get("release_date")),
            updated_at=coerce_str(data.get("updated_at")),
            downloads=coerce_int(data.get("downloads")),
            is_favorite=coerce_bool(data.get("isFavorite", data.get("is_favorite"))),
            is_nsfw_flagged=coerce_bool(data.get("isNSFWFlagged", data.get("is_nsfw_flagged"))),
            flagged_image_urls=coerce_str_list(
                data.get("flaggedImageUrls", data.get("flagged_image_urls"))
            ),
            indemnity=Indemnity.parse(data.get("indemnity"), Indemnity.NONE),
            data_provenance=coerce_str(data.get("data_provenance")),
            usage_restrictions=union_ci(coerce_str_list(data.get("usage_restrictions"))),
        )


def preserve_user_flags(target: Record, source: Record) -> Record:
    """
    Copy user flags from source onto target (in place) and return target.

    Enrichment and validation replies never carry trustworthy flag data, so
    every automated merge ends with this call.
    """
    target.is_favorite = source.is_favorite
    target.is_nsfw_flagged = source.is_nsfw_flagged
    target.flagged_image_urls = list(source.flagged_image_urls)
    return target


__all__ = [
    "Domain",
    "LicenseType",
    "Indemnity",
    "LicenseInfo",
    "Hosting",
    "PricingEntry",
    "Record",
    "USER_FLAG_FIELDS",
    "preserve_user_flags",
    "coerce_bool",
    "coerce_str",
    "coerce_float",
    "coerce_int",
    "coerce_str_list",
    "union_ci",
]
