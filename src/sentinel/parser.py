"""Turning pasted text, spreadsheets and PDFs into schedule blocks.

Every entry point returns blocks sorted by start time with zero-padded
``HH:MM`` times. Lines that don't look like ``<start> - <end> <label>`` are
skipped; an empty result means nothing was recognised and it is up to the
caller to report that.
"""

import datetime as dt
import re
from collections.abc import Callable, Iterable, Sequence
from pathlib import Path

from loguru import logger

from sentinel.errors import ParseError
from sentinel.schema import ActivityType, ScheduleBlock
from sentinel.utils.time import normalize_time

Classifier = Callable[[str], ActivityType]

_SEPARATOR = r"\s*(?:[-–—]+|to)\s*"
_CLOCK = r"\d{1,2}:\d{2}(?:\s*[ap]m\b)?"
_TABLE_CLOCK = r"\d{1,2}[:.]\d{2}"

LINE_PATTERN = re.compile(rf"({_CLOCK}){_SEPARATOR}({_CLOCK})[:\s]*(.+)", re.IGNORECASE)
ROW_PATTERN = re.compile(rf"({_TABLE_CLOCK}){_SEPARATOR}({_TABLE_CLOCK})", re.IGNORECASE)
CELL_TIME_PATTERN = re.compile(rf"^{_TABLE_CLOCK}")

# Looser shapes tried on document text when the line pattern finds nothing:
# "2.00 PM - 5.00 PM: Work" and "9am to 11am Gym".
FALLBACK_PATTERNS = [
    re.compile(
        rf"({_TABLE_CLOCK})\s*(am|pm)?{_SEPARATOR}({_TABLE_CLOCK})\s*(am|pm)?[:\-–\s]*(.+)",
        re.IGNORECASE,
    ),
    re.compile(
        rf"(\d{{1,2}})\s*(am|pm){_SEPARATOR}(\d{{1,2}})\s*(am|pm)[:\-–\s]*(.+)",
        re.IGNORECASE,
    ),
]

# First matching rule wins.
CATEGORY_RULES: list[tuple[tuple[str, ...], ActivityType]] = [
    (("workout", "gym", "exercise", "yoga", "run", "jog", "sport"), ActivityType.WORKOUT),
    (("class", "lecture", "seminar"), ActivityType.CLASS),
    (("deep", "focus"), ActivityType.DEEP_STUDY),
    (("walk", "break", "rest", "relax", "decompress"), ActivityType.WALK),
]

MIN_DOCUMENT_TEXT = 10
SUPPORTED_SUFFIXES = (".xlsx", ".xlsm", ".pdf", ".txt", ".csv")

PDF_EXTRACTION_FAILED = (
    "Could not extract text from this PDF.\n\n"
    "Try one of these alternatives:\n"
    "  - Paste the schedule text with `sentinel import --text`\n"
    "  - Use Excel format (.xlsx) instead\n"
    "  - Enter your schedule in a .txt file, one block per line"
)
NO_ENTRIES_FOUND = (
    "Found text but no schedule entries.\n\n"
    "Make sure your document has times like:\n"
    '  - "09:00 - 12:00 Study Session"\n'
    '  - "2:00 PM - 5:00 PM Work"\n\n'
    "Or paste the text with `sentinel import --text` instead."
)


def classify_activity(label: str) -> ActivityType:
    """Best-effort category for a label, by keyword. Unmatched labels are Study."""
    lower = label.lower()
    for keywords, activity_type in CATEGORY_RULES:
        if any(keyword in lower for keyword in keywords):
            return activity_type
    return ActivityType.STUDY


def _sort_blocks(blocks: list[ScheduleBlock]) -> list[ScheduleBlock]:
    return sorted(blocks, key=lambda block: block.start)


def _with_meridiem(clock: str, meridiem: str | None) -> str:
    clock = clock.replace(".", ":")
    if ":" not in clock:
        clock += ":00"
    return f"{clock}{meridiem}" if meridiem else clock


def parse_text_with_diagnostics(
    text: str,
    classify: Classifier = classify_activity,
    id_prefix: str = "custom",
) -> tuple[list[ScheduleBlock], list[tuple[int, str]]]:
    """
    Parses timetable text, one block per line.

    Returns:
        (blocks, skipped) where ``skipped`` holds ``(line_number, line)`` for
        every non-blank line that was not recognised as a block.
    """
    blocks: list[ScheduleBlock] = []
    skipped: list[tuple[int, str]] = []

    lines = [line for line in text.splitlines() if line.strip()]
    for index, line in enumerate(lines, start=1):
        match = LINE_PATTERN.search(line)
        if not match:
            skipped.append((index, line))
            continue

        start_raw, end_raw, label = match.groups()
        try:
            start = normalize_time(start_raw)
            end = normalize_time(end_raw)
        except ValueError:
            skipped.append((index, line))
            continue

        activity = label.strip()
        blocks.append(
            ScheduleBlock(
                id=f"{id_prefix}-{index}",
                start=start,
                end=end,
                activity=activity,
                type=classify(activity),
            )
        )

    if skipped:
        logger.debug(f"Skipped {len(skipped)} unrecognised line(s)")
    return _sort_blocks(blocks), skipped


def parse_timetable_text(
    text: str,
    classify: Classifier = classify_activity,
    id_prefix: str = "custom",
) -> list[ScheduleBlock]:
    """Parses text like '6:00 - 7:00 Morning Workout' into sorted blocks."""
    blocks, _ = parse_text_with_diagnostics(text, classify=classify, id_prefix=id_prefix)
    return blocks


def serialize_schedule(blocks: Iterable[ScheduleBlock]) -> str:
    """Renders blocks as canonical 'HH:MM - HH:MM label' lines."""
    return "\n".join(block.to_line() for block in blocks)


def _cell_text(cell) -> str:
    if cell is None:
        return ""
    if isinstance(cell, (dt.time, dt.datetime)):
        return cell.strftime("%H:%M")
    return str(cell).strip()


def parse_rows(
    rows: Iterable[Sequence],
    classify: Classifier = classify_activity,
) -> list[ScheduleBlock]:
    """
    Parses spreadsheet rows.

    The time range may sit anywhere in the row. The label is whatever follows
    it, otherwise the first cell that isn't a time.
    """
    blocks: list[ScheduleBlock] = []

    for row in rows:
        if not row or len(row) < 2:
            continue

        cells = [_cell_text(cell) for cell in row]
        row_text = " ".join(cells)
        match = ROW_PATTERN.search(row_text)
        if not match:
            continue

        try:
            start = normalize_time(match.group(1).replace(".", ":"))
            end = normalize_time(match.group(2).replace(".", ":"))
        except ValueError:
            continue

        after_time = re.sub(r"^[:\s]+", "", row_text[match.end():]).strip()
        activity = after_time or next(
            (cell for cell in cells if cell and not CELL_TIME_PATTERN.match(cell)),
            "Activity",
        )

        blocks.append(
            ScheduleBlock(
                id=f"excel-{len(blocks) + 1}",
                start=start,
                end=end,
                activity=activity.strip(),
                type=classify(activity),
            )
        )

    return _sort_blocks(blocks)


def _parse_fallback(text: str, classify: Classifier) -> list[ScheduleBlock]:
    blocks: list[ScheduleBlock] = []

    for line in re.split(r"[\n\r]+", text):
        for pattern in FALLBACK_PATTERNS:
            match = pattern.search(line)
            if not match:
                continue
            start_raw, start_meridiem, end_raw, end_meridiem, label = match.groups()
            try:
                start = normalize_time(_with_meridiem(start_raw, start_meridiem))
                end = normalize_time(_with_meridiem(end_raw, end_meridiem))
            except ValueError:
                break

            activity = (label or "").strip() or "Activity"
            blocks.append(
                ScheduleBlock(
                    id=f"pdf-{len(blocks) + 1}",
                    start=start,
                    end=end,
                    activity=activity,
                    type=classify(activity),
                )
            )
            break

    return blocks


def parse_document_text(text: str, classify: Classifier = classify_activity) -> list[ScheduleBlock]:
    """
    Parses text extracted from a page-oriented document.

    Raises:
        ParseError: if the text is too short to hold a schedule or no entry
            was found by either the line pattern or the looser fallbacks.
    """
    if not text or len(text.strip()) < MIN_DOCUMENT_TEXT:
        raise ParseError(PDF_EXTRACTION_FAILED)

    blocks = parse_timetable_text(text, classify=classify, id_prefix="pdf")
    if not blocks:
        logger.debug("Line pattern found nothing, trying fallback patterns")
        blocks = _parse_fallback(text, classify)

    if not blocks:
        raise ParseError(NO_ENTRIES_FOUND)
    return _sort_blocks(blocks)


def read_workbook_rows(path: Path) -> list[list]:
    """Rows of the first worksheet, with trailing empty cells dropped."""
    from openpyxl import load_workbook

    workbook = load_workbook(path, read_only=True, data_only=True)
    try:
        sheet = workbook.worksheets[0]
        rows = []
        for values in sheet.iter_rows(values_only=True):
            row = list(values)
            while row and row[-1] in (None, ""):
                row.pop()
            rows.append(row)
        return rows
    finally:
        workbook.close()


def _raw_pdf_strings(path: Path) -> str:
    """Pulls literal '(...)' strings out of an uncompressed PDF body."""
    raw = path.read_bytes().decode("latin-1")
    literals = re.findall(r"\(([^)]{2,100})\)", raw)
    return " ".join(text for text in literals if re.search(r"[a-zA-Z0-9]", text))


def extract_pdf_text(path: Path) -> str:
    """Concatenates the text of every page, one page per line."""
    from pypdf import PdfReader

    try:
        reader = PdfReader(path)
        return "\n".join(page.extract_text() or "" for page in reader.pages)
    except Exception as e:
        logger.warning(f"pypdf could not read {path.name}: {e}")

    try:
        return _raw_pdf_strings(path)
    except OSError as e:
        logger.warning(f"Raw PDF extraction failed for {path.name}: {e}")
        return ""


def parse_schedule_file(path: Path | str, classify: Classifier = classify_activity) -> list[ScheduleBlock]:
    """
    Parses an uploaded schedule (.xlsx, .pdf, .txt or .csv).

    Raises:
        ParseError: for unsupported formats or when text extraction fails.
    """
    path = Path(path)
    suffix = path.suffix.lower()
    logger.info(f"Parsing schedule file: {path.name}")

    if suffix in (".xlsx", ".xlsm"):
        try:
            rows = read_workbook_rows(path)
        except Exception as e:
            logger.error(f"Error parsing Excel file: {e}")
            raise ParseError("Failed to parse Excel file.\nPlease check the format.") from e
        return parse_rows(rows, classify=classify)

    if suffix == ".pdf":
        return parse_document_text(extract_pdf_text(path), classify=classify)

    if suffix in (".txt", ".csv"):
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.error(f"Error reading {path.name}: {e}")
            raise ParseError(
                f"Could not read {path.name}.\nMake sure it is a UTF-8 text file."
            ) from e
        return parse_timetable_text(text, classify=classify)

    raise ParseError(
        "Unsupported file format.\n"
        f"Please upload one of: {', '.join(SUPPORTED_SUFFIXES)}"
    )
