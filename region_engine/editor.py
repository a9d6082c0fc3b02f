"""Interactive editing of region geo_definitions.

For each selected region the operator walks through three prompts (states,
counties, zipcodes), entering signed tokens until ``done``. Accepted tokens
are appended in memory; the definition is written only when the zipcode
step finishes. Running out of input abandons the session and leaves the
stored document untouched.
"""

import logging
from typing import Iterable, Protocol

from pydantic import ValidationError

from .rules import RuleValidator, ValidationResult
from .schemas import RegionDefinition, RegionKind, RuleCategory, RunSummary
from .store import DocumentStore, StoredDocument

logger = logging.getLogger(__name__)

SECTION_HELP = {
    RuleCategory.STATE: [
        'Enter state names with "+" to add or "-" to subtract',
    ],
    RuleCategory.COUNTY: [
        'Enter counties as "County Name, ST" with "+" to add or "-" to subtract',
        'Optional: Include qualifier like "County Name (County), ST" or "County Name (city), ST"',
    ],
    RuleCategory.ZIPCODE: [
        'Enter 5-digit zipcodes with "+" to add or "-" to subtract',
    ],
}

PROMPTS = {
    RuleCategory.STATE: "State: ",
    RuleCategory.COUNTY: "County: ",
    RuleCategory.ZIPCODE: "Zipcode: ",
}


class SessionAbandoned(Exception):
    """Operator input ended before the session was committed."""


# =============================================================================
# Line sources
# =============================================================================


class LineSource(Protocol):
    """Where operator input comes from. None means end of input."""

    def read_line(self, prompt: str) -> str | None: ...


class ConsoleLineSource:
    """Reads operator input from the terminal."""

    def read_line(self, prompt: str) -> str | None:
        try:
            return input(prompt)
        except EOFError:
            return None


class ScriptedLineSource:
    """Replays a fixed list of lines; used by tests and batch runs."""

    def __init__(self, lines: Iterable[str]):
        self._lines = iter(lines)
        self.prompts: list[str] = []

    def read_line(self, prompt: str) -> str | None:
        self.prompts.append(prompt)
        return next(self._lines, None)


# =============================================================================
# Session
# =============================================================================


class EditorSession:
    """In-memory edit of one region's definition, one category at a time."""

    def __init__(self, validator: RuleValidator, definition: RegionDefinition | None = None):
        self.validator = validator
        self.definition = (definition or RegionDefinition()).copy_for_editing()
        self.category = RuleCategory.STATE
        self.finished = False

    def submit(self, token: str) -> ValidationResult:
        """Validate a token for the active category; append it if accepted."""
        result = self.validator.validate(self.category, token)
        if result.accepted:
            self.definition.append(result.entry)
        return result

    def clear(self) -> None:
        self.definition.clear(self.category)

    def advance(self) -> bool:
        """Move to the next category. Returns False after the last one."""
        order = list(RuleCategory)
        position = order.index(self.category)
        if position + 1 < len(order):
            self.category = order[position + 1]
            return True
        self.finished = True
        return False

    def commit(self, store: DocumentStore, document: StoredDocument, pretty: bool = False) -> None:
        """Replace the document's stored geo_definition with this session's lists."""
        document.data["geo_definition"] = self.definition.to_document()
        store.write(document.path, document.data, pretty)


def format_definition(definition: RegionDefinition) -> list[str]:
    states = ", ".join(str(e) for e in definition.states) or "(none)"
    counties = ", ".join(str(e) for e in definition.counties) or "(none)"
    zipcodes = f"{len(definition.zipcodes)} zipcode(s)" if definition.zipcodes else "(none)"
    return [f"  States: {states}", f"  Counties: {counties}", f"  Zipcodes: {zipcodes}"]


def print_result(result: ValidationResult) -> None:
    if result.accepted:
        print(f"  ✓ {result.message}")
        return
    print(f"  ✗ {result.message}")
    if result.hint:
        print(f"  {result.hint}")
    for candidate in result.candidates:
        print(f"    - {candidate}")


# =============================================================================
# Editor loop
# =============================================================================


class RegionEditor:
    """Drives EditorSessions for a list of region documents."""

    def __init__(
        self,
        validator: RuleValidator,
        store: DocumentStore,
        kind: RegionKind,
        lines: LineSource,
        pretty: bool = False,
        area_names: dict[str, tuple[str, str]] | None = None,
    ):
        self.validator = validator
        self.store = store
        self.kind = kind
        self.lines = lines
        self.pretty = pretty
        self.area_names = area_names or {}

    def _read(self, prompt: str) -> str:
        line = self.lines.read_line(prompt)
        if line is None:
            raise SessionAbandoned()
        return line.strip()

    def edit(self, document: StoredDocument) -> bool:
        """Run one region through the editor. Returns True if committed."""
        data = document.data
        print(f"\n{'=' * 60}")
        print(f"{self.kind.singular.title()}: {data.get('name')} ({data.get('code')})")
        area = self.area_names.get(data.get("area_id") or "")
        if area:
            print(f"Area: {area[0]} ({area[1]})")
        print("=" * 60)

        current = RegionDefinition.from_document(data.get("geo_definition"))
        if data.get("geo_definition"):
            print("\nCurrent geo_definition:")
            for line in format_definition(current):
                print(line)
        else:
            print("\n(No geo_definition set)")

        if self._read("\nModify geo_definition? (y/n): ").lower() != "y":
            print("Skipped.")
            return False

        session = EditorSession(self.validator, current)
        while True:
            self._edit_category(session)
            if not session.advance():
                break

        session.commit(self.store, document, self.pretty)
        print("\n✓ Saved geo_definition:")
        for line in format_definition(session.definition):
            print(line)
        return True

    def _edit_category(self, session: EditorSession) -> None:
        category = session.category
        print(f"\n--- {category.plural.upper()} ---")
        for line in SECTION_HELP[category]:
            print(line)
        print('Type "done" when finished, "clear" to reset')
        entries = session.definition.entries(category)
        if category is RuleCategory.ZIPCODE:
            print(f"Current: {len(entries)} zipcode(s)")
        else:
            print(f"Current: {', '.join(str(e) for e in entries) or '(none)'}")

        while True:
            token = self._read(PROMPTS[category])
            command = token.lower()
            if command == "done":
                return
            if command == "clear":
                session.clear()
                print(f"  Cleared all {category.plural}")
                continue
            print_result(session.submit(token))

    def run(self, documents: list[StoredDocument]) -> RunSummary:
        summary = RunSummary(total=len(documents))
        for document in documents:
            try:
                committed = self.edit(document)
            except SessionAbandoned:
                print("\nInput ended; uncommitted changes were discarded.")
                summary.skipped += summary.total - summary.updated - summary.skipped - summary.errors
                break
            except (ValueError, ValidationError) as e:
                logger.error(f"Invalid geo_definition in {document.filename}: {e}")
                summary.record_error(f"{document.filename}: {e}")
                continue
            except OSError as e:
                logger.error(f"Error writing {document.filename}: {e}")
                summary.record_error(f"{document.filename}: {e}")
                continue
            if committed:
                summary.updated += 1
            else:
                summary.skipped += 1
        return summary
