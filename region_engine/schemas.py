"""Pydantic models for region rule sets and generated region records.

Rule sets are stored in region documents as lists of signed strings
("+Arizona", "-Bristol (city), VA", "+87501"). The models here parse and
render that form; validation against reference data lives in
``region_engine.rules``.
"""

import re
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


# =============================================================================
# ENUMS
# =============================================================================


class RuleSign(str, Enum):
    """Whether a rule adds territory to the region or removes it."""

    INCLUDE = "+"
    EXCLUDE = "-"


class RuleCategory(str, Enum):
    """Kind of reference entity a rule names."""

    STATE = "state"
    COUNTY = "county"
    ZIPCODE = "zipcode"

    @property
    def plural(self) -> str:
        """Key of this category's list in a stored geo_definition."""
        return {"state": "states", "county": "counties", "zipcode": "zipcodes"}[self.value]


class RegionKind(str, Enum):
    """Entity directories that hold region documents."""

    AREA = "areas"
    COMMUNITY = "communities"

    @property
    def singular(self) -> str:
        return "area" if self is RegionKind.AREA else "community"


# =============================================================================
# County expressions
# =============================================================================

# "Name (Qualifier), ST"
_QUALIFIED_COUNTY = re.compile(r"^(.+?)\s*\(([^)]+)\)\s*,\s*(.+)$")
# "Name, ST"
_BARE_COUNTY = re.compile(r"^(.+?)\s*,\s*([^,]+)$")


class CountyExpression(BaseModel):
    """A county reference as typed by an operator or stored in a rule."""

    model_config = ConfigDict(frozen=True)

    name: str
    state: str
    qualifier: str | None = None

    @classmethod
    def parse(cls, text: str) -> "CountyExpression | None":
        """Parse ``Name, ST`` or ``Name (Qualifier), ST``; None if neither."""
        text = text.strip()
        match = _QUALIFIED_COUNTY.match(text)
        if match:
            return cls(
                name=match.group(1).strip(),
                qualifier=match.group(2).strip(),
                state=match.group(3).strip(),
            )
        match = _BARE_COUNTY.match(text)
        if match:
            return cls(name=match.group(1).strip(), state=match.group(2).strip())
        return None

    @property
    def key(self) -> str:
        """Lookup key into the county index (qualifier not included)."""
        return f"{self.name}, {self.state}".lower()

    @property
    def base_name(self) -> str:
        return f"{self.name}, {self.state}"

    def __str__(self) -> str:
        if self.qualifier:
            return f"{self.name} ({self.qualifier}), {self.state}"
        return self.base_name


# =============================================================================
# Rule entries and definitions
# =============================================================================


class RegionRuleEntry(BaseModel):
    """One signed rule: include or exclude a state, county or zipcode."""

    model_config = ConfigDict(frozen=True)

    sign: RuleSign
    category: RuleCategory
    value: str = Field(min_length=1, description="Canonical entity text without the sign")

    @classmethod
    def parse(cls, category: RuleCategory, text: str) -> "RegionRuleEntry":
        """Parse a stored ``+value`` / ``-value`` string.

        Raises ValueError when the sign is missing or ``text`` is not a string.
        """
        if not isinstance(text, str):
            raise ValueError(f"Rule must be a string: {text!r}")
        text = text.strip()
        if not text or text[0] not in ("+", "-"):
            raise ValueError(f'Rule must start with "+" or "-": {text!r}')
        return cls(sign=RuleSign(text[0]), category=category, value=text[1:].strip())

    @property
    def county(self) -> CountyExpression | None:
        if self.category is not RuleCategory.COUNTY:
            return None
        return CountyExpression.parse(self.value)

    def __str__(self) -> str:
        return f"{self.sign.value}{self.value}"


class RegionDefinition(BaseModel):
    """Ordered state, county and zipcode rules owned by one region."""

    states: list[RegionRuleEntry] = Field(default_factory=list)
    counties: list[RegionRuleEntry] = Field(default_factory=list)
    zipcodes: list[RegionRuleEntry] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_categories(self):
        """Every entry must sit in the list of its own category."""
        for category in RuleCategory:
            for entry in getattr(self, category.plural):
                if entry.category is not category:
                    raise ValueError(
                        f"{entry.category.value} rule {entry} stored under {category.plural}"
                    )
        return self

    def entries(self, category: RuleCategory) -> list[RegionRuleEntry]:
        return getattr(self, category.plural)

    def append(self, entry: RegionRuleEntry) -> None:
        self.entries(entry.category).append(entry)

    def clear(self, category: RuleCategory) -> None:
        setattr(self, category.plural, [])

    def is_empty(self) -> bool:
        return not (self.states or self.counties or self.zipcodes)

    def copy_for_editing(self) -> "RegionDefinition":
        """Independent copy whose lists can be mutated by an editing session."""
        return RegionDefinition(
            states=list(self.states),
            counties=list(self.counties),
            zipcodes=list(self.zipcodes),
        )

    def to_document(self) -> dict[str, list[str]]:
        """Render as the ``geo_definition`` object stored in region documents."""
        return {
            category.plural: [str(entry) for entry in self.entries(category)]
            for category in RuleCategory
        }

    @classmethod
    def from_document(cls, document: dict[str, Any] | None) -> "RegionDefinition":
        """Parse a stored ``geo_definition`` object; missing lists are empty.

        Raises ValueError for anything that is not an object of string lists.
        """
        if not document:
            return cls()
        if not isinstance(document, dict):
            raise ValueError(f"geo_definition must be an object, got {type(document).__name__}")
        lists = {}
        for category in RuleCategory:
            values = document.get(category.plural) or []
            if not isinstance(values, list):
                raise ValueError(
                    f"geo_definition {category.plural} must be a list, got {type(values).__name__}"
                )
            lists[category.plural] = [RegionRuleEntry.parse(category, text) for text in values]
        return cls(**lists)


# =============================================================================
# Zipcode assignments and generated regions
# =============================================================================


class ZipcodeCommunityAssignment(BaseModel):
    """One exported zipcode tagged with its community and area labels."""

    model_config = ConfigDict(extra="ignore")

    zipcode: str
    county: str | None = None
    st: str | None = None
    area: str | None = None
    community: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    geo_polygon: dict[str, Any] | None = Field(
        default=None,
        description="GeoJSON geometry of the zipcode, when known"
    )

    @field_validator("zipcode", mode="before")
    @classmethod
    def coerce_zipcode(cls, v):
        return str(v).strip() if v is not None else v

    @field_validator("area", "community", mode="before")
    @classmethod
    def blank_label_is_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class GeneratedCommunity(BaseModel):
    """Community record produced by zipcode aggregation."""

    id: UUID = Field(default_factory=uuid4)
    name: str
    code: str
    description: str | None = None
    image_url: str | None = None
    color: str | None = None
    is_active: bool = True
    area_id: str | None = Field(
        default=None,
        description="Id of the generated Area named by the members' area label"
    )
    coordinator_id: str | None = None
    geo_polygon: dict[str, Any] | None = Field(
        default=None,
        description="Merged boundary as a one-feature FeatureCollection"
    )
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    deleted_at: datetime | None = None


class GeneratedArea(BaseModel):
    """Area record produced by zipcode aggregation."""

    id: UUID = Field(default_factory=uuid4)
    name: str
    code: str
    description: str | None = None
    color: str | None = None
    is_active: bool = True
    image_url: str | None = None
    steward_id: str | None = None
    finance_coordinator_id: str | None = None
    geo_polygon: dict[str, Any] | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    deleted_at: datetime | None = None
    area_admins: list[str] = Field(default_factory=list)


# =============================================================================
# Run statistics
# =============================================================================


class RunSummary(BaseModel):
    """Counts reported at the end of every command run."""

    total: int = 0
    created: int = 0
    updated: int = 0
    skipped: int = 0
    errors: int = 0
    error_messages: list[str] = Field(default_factory=list)

    def record_error(self, message: str) -> None:
        self.errors += 1
        self.error_messages.append(message)

    @property
    def exit_code(self) -> int:
        return 1 if self.errors else 0
