"""
BOM text import.

Turns OCR'd bill-of-materials text into an assembly part, its component
parts and the assembly_bom links between them.

The text contract:

    SK28S3-2S - Flush Head Stud - Phillips - Stainless     <- assembly line
    Cost: $12.40                                           <- optional
    Item  Description  Qty  ...                            <- table header
    SK101 Stud blank 2 ea 140                              <- component rows
    labor Assembly labor 1 hr                              <- dropped
    Page 1 / June 3, 2024 ...                              <- footers, dropped

An import runs as a BomImportSession that walks

    upload → processing → review → saving → complete

Review is where rows can be corrected and duplicates against the part
master are flagged; saving creates what is new and links what exists.
"""
import re
import threading
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.status_config import PartType
from app.exceptions import InvalidStateError, NotFoundError, ValidationError
from app.logging_config import get_logger
from app.models.part import AssemblyBOM, Part

logger = get_logger(__name__)

ASSEMBLY_LINE_RE = re.compile(r"^[A-Z]{1,3}[\w/-]+\s*-\s*.+", re.IGNORECASE)
COST_RE = re.compile(r"^Cost:\s*\$[\d.]+", re.IGNORECASE)
COST_VALUE_RE = re.compile(r"\$[\d.]+")
HEADER_RE = re.compile(r"^Item\s+Description\s+Qty", re.IGNORECASE)
FOOTER_MONTH_RE = re.compile(
    r"^(January|February|March|April|May|June|July|August|September|October|November|December)",
    re.IGNORECASE,
)
FOOTER_PAGE_RE = re.compile(r"^Page\s+\d+", re.IGNORECASE)
QUANTITY_RE = re.compile(r"(\d+)\s*(ea|hr|pc|lb|ft|each|pcs)\b", re.IGNORECASE)
LABOR_RE = re.compile(r"^labor\b", re.IGNORECASE)

# OCR reads a leading "1" as a lowercase L
OCR_FIXES = [
    (re.compile(r"\bl\s*ea\b", re.IGNORECASE), "1 ea"),
    (re.compile(r"\bl\s*hr\b", re.IGNORECASE), "1 hr"),
    (re.compile(r"\bl\s*pc\b", re.IGNORECASE), "1 pc"),
]

TITLE_LINES = {"bill of materials"}


@dataclass
class ParsedPart:
    part_number: str
    description: str
    quantity: int = 1
    unit: str = "ea"
    part_type: str = PartType.MANUFACTURED.value
    requires_passivation: bool = False
    existing_id: Optional[int] = None
    existing_description: Optional[str] = None

    @property
    def is_duplicate(self) -> bool:
        return self.existing_id is not None


@dataclass
class ParsedBom:
    assembly: ParsedPart
    cost: Optional[str] = None
    components: List[ParsedPart] = field(default_factory=list)


def normalize_ocr(line: str) -> str:
    for pattern, replacement in OCR_FIXES:
        line = pattern.sub(replacement, line)
    return line


def parse_component_row(line: str) -> Optional[ParsedPart]:
    """One table row, or None when the row is not a component."""
    normalized = normalize_ocr(line)
    match = QUANTITY_RE.search(normalized)
    if not match:
        return None

    before = normalized[:match.start()].strip()
    if not before or LABOR_RE.match(before):
        return None

    tokens = before.split()
    part_number = tokens[0]
    description = " ".join(tokens[1:]) or part_number
    return ParsedPart(
        part_number=part_number,
        description=description,
        quantity=int(match.group(1)) or 1,
        unit=match.group(2).lower(),
    )


def parse_bom_text(text: str) -> ParsedBom:
    """
    Parse OCR output into an assembly and its components.

    Component rows are only read after the table header. The first
    whitespace token before the quantity is the part number.
    """
    assembly_number = ""
    assembly_description = ""
    cost = None
    components: List[ParsedPart] = []
    in_table = False

    for raw in text.splitlines():
        line = raw.strip()
        if not line or line.lower() in TITLE_LINES:
            continue

        if not assembly_number and ASSEMBLY_LINE_RE.match(line):
            number, sep, description = line.partition(" - ")
            assembly_number = number.strip() if sep else line
            assembly_description = description.strip()
            continue

        if cost is None and COST_RE.match(line):
            cost = COST_VALUE_RE.search(line).group(0)
            continue

        if HEADER_RE.match(line):
            in_table = True
            continue

        if FOOTER_MONTH_RE.match(line) or FOOTER_PAGE_RE.match(line):
            continue
        if not in_table:
            continue

        row = parse_component_row(line)
        if row is not None:
            components.append(row)

    assembly = ParsedPart(
        part_number=assembly_number,
        description=assembly_description,
        part_type=PartType.ASSEMBLY.value,
    )
    return ParsedBom(assembly=assembly, cost=cost, components=components)


# =============================================================================
# Import session
# =============================================================================

class ImportStage(str, Enum):
    UPLOAD = "upload"
    PROCESSING = "processing"
    REVIEW = "review"
    SAVING = "saving"
    COMPLETE = "complete"


IMPORT_TRANSITIONS: Dict[ImportStage, List[ImportStage]] = {
    ImportStage.UPLOAD: [ImportStage.PROCESSING],
    ImportStage.PROCESSING: [ImportStage.REVIEW, ImportStage.UPLOAD],
    ImportStage.REVIEW: [ImportStage.SAVING, ImportStage.UPLOAD],
    ImportStage.SAVING: [ImportStage.COMPLETE],
    ImportStage.COMPLETE: [ImportStage.UPLOAD],
}


@dataclass
class SaveReport:
    created: List[str] = field(default_factory=list)
    linked: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)


class BomImportSession:
    """One run of the import wizard."""

    def __init__(self, session_id: Optional[str] = None):
        self.id = session_id or uuid.uuid4().hex
        self.stage = ImportStage.UPLOAD
        self.bom: Optional[ParsedBom] = None
        self.error: Optional[str] = None
        self.report: Optional[SaveReport] = None

    def _move(self, target: ImportStage) -> None:
        allowed = IMPORT_TRANSITIONS[self.stage]
        if target not in allowed:
            raise InvalidStateError(
                f"BOM import cannot go from {self.stage.value} to {target.value}",
                current_state=self.stage.value,
                allowed_states=[s.value for s in allowed],
            )
        self.stage = target

    def process(self, db: Session, text: str) -> ParsedBom:
        """upload → processing → review; a text with nothing usable goes back to upload."""
        self._move(ImportStage.PROCESSING)
        self.error = None
        bom = parse_bom_text(text or "")

        if not bom.assembly.part_number:
            self.error = "Could not find an assembly part number in the text"
        elif not bom.components:
            self.error = "No components found in the text"
        if self.error:
            self._move(ImportStage.UPLOAD)
            raise ValidationError(self.error, field="text")

        mark_duplicates(db, bom)
        self.bom = bom
        self._move(ImportStage.REVIEW)
        logger.info(
            f"BOM import {self.id}: {bom.assembly.part_number} with {len(bom.components)} component(s)"
        )
        return bom

    def update_assembly(self, part_number: Optional[str] = None, description: Optional[str] = None) -> None:
        self._require_review()
        if part_number:
            self.bom.assembly.part_number = part_number.strip()
        if description is not None:
            self.bom.assembly.description = description.strip()

    def update_component(self, index: int, **changes) -> ParsedPart:
        self._require_review()
        try:
            component = self.bom.components[index]
        except IndexError:
            raise NotFoundError("BOM row", index)
        for name, value in changes.items():
            if value is not None:
                setattr(component, name, value)
        return component

    def remove_component(self, index: int) -> None:
        self._require_review()
        if not 0 <= index < len(self.bom.components):
            raise NotFoundError("BOM row", index)
        del self.bom.components[index]

    def recheck(self, db: Session) -> None:
        self._require_review()
        mark_duplicates(db, self.bom)

    def save(self, db: Session) -> SaveReport:
        """review → saving → complete."""
        self._move(ImportStage.SAVING)
        try:
            self.report = save_bom(db, self.bom)
        finally:
            self._move(ImportStage.COMPLETE)
        return self.report

    def reset(self) -> None:
        self._move(ImportStage.UPLOAD)
        self.bom = None
        self.error = None
        self.report = None

    def _require_review(self) -> None:
        if self.stage != ImportStage.REVIEW:
            raise InvalidStateError(
                "BOM rows can only be edited during review",
                current_state=self.stage.value,
                allowed_states=[ImportStage.REVIEW.value],
            )


def mark_duplicates(db: Session, bom: ParsedBom) -> None:
    """Point every parsed row at the existing part with the same number, if any."""
    rows = [bom.assembly] + bom.components
    numbers = {row.part_number for row in rows}
    existing = {
        part.part_number: part
        for part in db.query(Part).filter(Part.part_number.in_(numbers)).all()
    }
    for row in rows:
        part = existing.get(row.part_number)
        row.existing_id = part.id if part else None
        row.existing_description = part.description if part else None


def _create_part(db: Session, row: ParsedPart, part_type: str) -> Part:
    part = Part(
        part_number=row.part_number,
        description=row.description,
        part_type=part_type,
        requires_passivation=row.requires_passivation,
        is_active=True,
    )
    with db.begin_nested():
        db.add(part)
    return part


def save_bom(db: Session, bom: ParsedBom) -> SaveReport:
    """
    Create new parts and missing BOM links.

    Each row is written in its own savepoint; a failing row is reported
    and the rest of the import carries on.
    """
    report = SaveReport()
    assembly = bom.assembly

    if assembly.is_duplicate:
        assembly_id = assembly.existing_id
        report.linked.append(f"Assembly: {assembly.part_number} (already exists)")
    else:
        try:
            assembly_id = _create_part(db, assembly, PartType.ASSEMBLY.value).id
        except IntegrityError as e:
            report.errors.append(f"Assembly {assembly.part_number}: {e.orig}")
            logger.warning(f"BOM import could not create assembly {assembly.part_number}: {e.orig}")
            return report
        report.created.append(f"Assembly: {assembly.part_number}")

    for sort_order, component in enumerate(bom.components):
        if component.is_duplicate:
            component_id = component.existing_id
            report.linked.append(f"Component: {component.part_number} (already exists)")
        else:
            try:
                component_id = _create_part(db, component, component.part_type or PartType.MANUFACTURED.value).id
            except IntegrityError as e:
                report.errors.append(f"Component {component.part_number}: {e.orig}")
                continue
            report.created.append(f"Component: {component.part_number}")

        link = (
            db.query(AssemblyBOM)
            .filter(AssemblyBOM.assembly_id == assembly_id, AssemblyBOM.component_id == component_id)
            .first()
        )
        if link:
            report.linked.append(f"BOM link already exists: {component.part_number}")
            continue

        try:
            with db.begin_nested():
                db.add(AssemblyBOM(
                    assembly_id=assembly_id,
                    component_id=component_id,
                    quantity=component.quantity,
                    sort_order=sort_order,
                ))
        except IntegrityError as e:
            report.errors.append(f"BOM link {component.part_number}: {e.orig}")
            continue
        report.linked.append(f"BOM: {assembly.part_number} → {component.part_number}")

    logger.info(
        f"BOM import for {assembly.part_number}: {len(report.created)} created, "
        f"{len(report.linked)} linked, {len(report.errors)} error(s)"
    )
    return report


class ImportSessionRegistry:
    """In-process store of running import sessions, keyed by id."""

    def __init__(self):
        self._sessions: Dict[str, BomImportSession] = {}
        self._lock = threading.Lock()

    def create(self) -> BomImportSession:
        session = BomImportSession()
        with self._lock:
            self._sessions[session.id] = session
        return session

    def get(self, session_id: str) -> BomImportSession:
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            raise NotFoundError("BOM import", session_id)
        return session

    def discard(self, session_id: str) -> None:
        with self._lock:
            self._sessions.pop(session_id, None)


import_sessions = ImportSessionRegistry()
