"""Validation of operator-typed rule tokens against the reference index.

A token is a sign followed by an entity: ``+Arizona``, ``-El Paso, TX``,
``+Bristol (city), VA``, ``+87501``. Validation never raises for bad input;
it returns a ValidationResult the editor can print and move on from.
"""

import re

from pydantic import BaseModel, Field

from .reference import ReferenceCounty, ReferenceIndex
from .schemas import CountyExpression, RegionRuleEntry, RuleCategory, RuleSign

ZIPCODE_PATTERN = re.compile(r"^\d{5}$")

COUNTY_FORMAT_HINT = 'Format: "County Name, ST" (e.g., "El Paso, TX")'
STATE_HINT = "Valid examples: Arizona, New Mexico, Texas"


class ValidationResult(BaseModel):
    """Outcome of validating one rule token."""

    accepted: bool
    entry: RegionRuleEntry | None = Field(
        default=None,
        description="Normalized entry to append, set only when accepted"
    )
    message: str
    hint: str | None = None
    candidates: list[str] = Field(
        default_factory=list,
        description="Qualified names the operator can choose between"
    )

    @classmethod
    def accept(cls, entry: RegionRuleEntry) -> "ValidationResult":
        return cls(accepted=True, entry=entry, message=f"Added: {entry}")

    @classmethod
    def reject(cls, message: str, hint: str | None = None, candidates: list[str] | None = None) -> "ValidationResult":
        return cls(accepted=False, message=message, hint=hint, candidates=candidates or [])


def split_sign(token: str) -> tuple[RuleSign, str] | None:
    """Split ``+value`` / ``-value`` into sign and stripped value."""
    token = token.strip()
    if not token or token[0] not in ("+", "-"):
        return None
    return RuleSign(token[0]), token[1:].strip()


def canonical_county_value(county: ReferenceCounty) -> str:
    """Stored form of an accepted county: always carries the qualifier."""
    if county.qualifier:
        return county.display_name
    return f"{county.name}, {county.state_abbreviation}"


class RuleValidator:
    """Checks rule tokens for one category against the reference index."""

    def __init__(self, index: ReferenceIndex):
        self.index = index

    def validate(self, category: RuleCategory, token: str) -> ValidationResult:
        parsed = split_sign(token)
        if parsed is None:
            return ValidationResult.reject('Must start with "+" or "-"')
        sign, value = parsed

        if category is RuleCategory.STATE:
            return self.validate_state(sign, value)
        if category is RuleCategory.COUNTY:
            return self.validate_county(sign, value)
        return self.validate_zipcode(sign, value)

    def validate_state(self, sign: RuleSign, name: str) -> ValidationResult:
        state = self.index.state(name) if name else None
        if state is None:
            return ValidationResult.reject(f"Invalid state: {name}", hint=STATE_HINT)
        return ValidationResult.accept(
            RegionRuleEntry(sign=sign, category=RuleCategory.STATE, value=state.name)
        )

    def validate_county(self, sign: RuleSign, text: str) -> ValidationResult:
        expression = CountyExpression.parse(text)
        if expression is None:
            return ValidationResult.reject(f"Invalid county format: {text}", hint=COUNTY_FORMAT_HINT)

        matches = self.index.counties(expression.key)
        if not matches:
            return ValidationResult.reject(
                f"Unknown county: {expression.base_name}", hint=COUNTY_FORMAT_HINT
            )

        candidates = [county.display_name for county in matches]

        if expression.qualifier is None:
            if len(matches) > 1:
                example = f"{sign.value}{expression.name} ({matches[0].qualifier}), {expression.state}"
                return ValidationResult.reject(
                    f'Multiple entries found for "{expression.base_name}"',
                    hint=f'Please specify the qualifier, e.g., "{example}"',
                    candidates=candidates,
                )
            selected = matches[0]
        else:
            wanted = expression.qualifier.lower()
            filtered = [county for county in matches if county.qualifier.lower() == wanted]
            if not filtered:
                return ValidationResult.reject(
                    f'No county found with qualifier "{expression.qualifier}"',
                    hint=f'Available options for "{expression.base_name}":',
                    candidates=candidates,
                )
            if len(filtered) > 1:
                return ValidationResult.reject(
                    f'Qualifier "{expression.qualifier}" matches {len(filtered)} entries '
                    f'for "{expression.base_name}"',
                    candidates=candidates,
                )
            selected = filtered[0]

        return ValidationResult.accept(
            RegionRuleEntry(
                sign=sign,
                category=RuleCategory.COUNTY,
                value=canonical_county_value(selected),
            )
        )

    def validate_zipcode(self, sign: RuleSign, zipcode: str) -> ValidationResult:
        if not ZIPCODE_PATTERN.match(zipcode):
            return ValidationResult.reject(f"Invalid zipcode format: {zipcode} (must be 5 digits)")
        if self.index.zipcode(zipcode) is None:
            return ValidationResult.reject(f"Zipcode not found: {zipcode}")
        return ValidationResult.accept(
            RegionRuleEntry(sign=sign, category=RuleCategory.ZIPCODE, value=zipcode)
        )
