"""Parse attendee rosters from spreadsheet CSV exports."""
import csv
import io
import logging
import re
from dataclasses import dataclass, field

from doorcheck.errors import RosterImportError
from doorcheck.models import Attendee
from doorcheck.models.attendee import MAX_TICKETS

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

# Keyword groups matched against normalized headers (lowercase, alphanumeric only).
FIRST_NAME_KEYWORDS = ("firstname", "first", "givenname")
LAST_NAME_KEYWORDS = ("lastname", "last", "surname", "familyname")
FULL_NAME_KEYWORDS = ("name", "fullname", "yourname", "studentname", "student")
EMAIL_KEYWORDS = ("email", "emailaddress", "mail")
STUDENT_ID_KEYWORDS = (
    "studentid", "grade", "studentnumber", "studentno", "idnumber", "id", "number",
)
TICKET_COUNT_KEYWORDS = (
    "ticketcount", "numberoftickets", "howmanytickets", "ticketquantity",
    "ticketspurchased", "tickets", "quantity", "howmany", "count",
)
GUEST_NAME_KEYWORDS = (
    "guestname", "guestsname", "nameofguest", "guestfullname", "companionname",
    "guest", "companion", "plusone", "partner",
)
GUEST_SCHOOL_KEYWORDS = (
    "guestschool", "guestsschool", "schoolofguest", "companionschool",
    "guestuniversity", "guestcollege", "school",
)


@dataclass
class ParsedRoster:
    """Accepted attendees plus the counts reported to the organizer."""
    attendees: list[Attendee]
    headers: list[str]
    skipped: int = 0
    skipped_rows: list[int] = field(default_factory=list)

    @property
    def accepted(self) -> int:
        return len(self.attendees)


@dataclass
class ColumnMap:
    """Resolved column indexes; None when a column was not found."""
    email: int | None = None
    student_id: int | None = None
    first_name: int | None = None
    last_name: int | None = None
    full_name: int | None = None
    ticket_count: int | None = None
    guest_name: int | None = None
    guest_school: int | None = None

    @property
    def uses_name_pair(self) -> bool:
        return self.first_name is not None and self.last_name is not None

    @property
    def has_name(self) -> bool:
        return self.uses_name_pair or self.full_name is not None

    @property
    def required_width(self) -> int:
        """Minimum number of fields a row needs to carry every required column."""
        if self.uses_name_pair:
            name_columns = [self.first_name, self.last_name]
        else:
            name_columns = [self.full_name]
        return max(name_columns + [self.email, self.student_id]) + 1


def normalize_header(header: str) -> str:
    return re.sub(r"[^a-z0-9]", "", header.lower())


def find_column(
    headers: list[str],
    keywords: tuple[str, ...],
    exclude: tuple[str, ...] = (),
    taken: set[int] | None = None,
) -> int | None:
    """
    Find the first header matching a keyword group.

    An exact match on any keyword wins over a substring match. Headers
    containing an ``exclude`` fragment, and indexes in ``taken``, are skipped.
    """
    taken = taken or set()
    candidates = [
        (i, h) for i, h in enumerate(headers)
        if i not in taken and h and not any(x in h for x in exclude)
    ]
    for keyword in keywords:
        for i, header in candidates:
            if header == keyword:
                return i
    for i, header in candidates:
        if any(keyword in header for keyword in keywords):
            return i
    return None


def resolve_columns(headers: list[str]) -> ColumnMap:
    """Map normalized headers to roster fields."""
    columns = ColumnMap()
    columns.email = find_column(headers, EMAIL_KEYWORDS)
    columns.first_name = find_column(headers, FIRST_NAME_KEYWORDS, exclude=("guest",))
    columns.last_name = find_column(headers, LAST_NAME_KEYWORDS, exclude=("guest",))
    columns.full_name = find_column(
        headers, FULL_NAME_KEYWORDS, exclude=("guest", "companion", "school")
    )
    columns.student_id = find_column(
        headers, STUDENT_ID_KEYWORDS, exclude=("ticket", "guest", "phone")
    )

    taken = {
        i for i in (columns.email, columns.student_id, columns.first_name,
                    columns.last_name, columns.full_name)
        if i is not None
    }
    columns.ticket_count = find_column(headers, TICKET_COUNT_KEYWORDS, taken=taken)
    if columns.ticket_count is not None:
        taken.add(columns.ticket_count)
    columns.guest_school = find_column(headers, GUEST_SCHOOL_KEYWORDS, taken=taken)
    if columns.guest_school is not None:
        taken.add(columns.guest_school)
    columns.guest_name = find_column(headers, GUEST_NAME_KEYWORDS, taken=taken)
    return columns


def parse_ticket_count(value: str) -> int:
    """Ticket count for a row: 1 unless a positive integer is given, capped at 10."""
    try:
        count = int(value.strip())
    except ValueError:
        return 1
    if count <= 0:
        return 1
    return min(count, MAX_TICKETS)


def read_rows(raw_table: str) -> list[list[str]]:
    """Split CSV text into rows of stripped fields, dropping blank lines."""
    reader = csv.reader(io.StringIO(raw_table.strip()))
    rows = []
    for row in reader:
        fields = [value.strip() for value in row]
        if any(fields):
            rows.append(fields)
    return rows


def _cell(values: list[str], index: int | None) -> str:
    if index is None or index >= len(values):
        return ""
    return values[index]


def parse_roster(raw_table: str) -> ParsedRoster:
    """
    Parse a roster table into attendees.

    Expected layout: a header row followed by one row per attendee, e.g.

        First Name,Last Name,Email,Grade,How many tickets?
        Ada,Lovelace,ada@example.com,12,2

    Headers are matched loosely (case and punctuation are ignored), so
    Google Form exports like "Email Address" or "Your name" work too.

    Bad rows are skipped and counted. Raises RosterImportError when the
    table as a whole cannot produce any attendee.
    """
    rows = read_rows(raw_table)
    if len(rows) < 2:
        raise RosterImportError(
            "too_few_rows", "The sheet must have at least a header row and one data row."
        )

    raw_headers = rows[0]
    headers = [normalize_header(h) for h in raw_headers]
    logger.debug(f"Roster headers: {headers}")
    columns = resolve_columns(headers)
    available = ", ".join(raw_headers)

    if not columns.has_name:
        raise RosterImportError(
            "missing_column",
            f"Name column(s) not found. Available columns: {available}",
        )
    if columns.email is None:
        raise RosterImportError(
            "missing_column",
            f"Email column not found. Available columns: {available}",
        )
    if columns.student_id is None:
        raise RosterImportError(
            "missing_column",
            f"Student ID/Grade column not found. Available columns: {available}",
        )

    attendees = []
    skipped_rows = []
    width = columns.required_width

    for line_number, values in enumerate(rows[1:], start=2):
        if len(values) < width:
            logger.warning(
                f"Row {line_number}: not enough columns ({len(values)} found, need {width})"
            )
            skipped_rows.append(line_number)
            continue

        if columns.uses_name_pair:
            name = f"{_cell(values, columns.first_name)} {_cell(values, columns.last_name)}".strip()
        else:
            name = _cell(values, columns.full_name)
        email = _cell(values, columns.email)
        student_id = _cell(values, columns.student_id)

        if not name or not email or not student_id:
            logger.warning(f"Row {line_number}: missing name, email or student id")
            skipped_rows.append(line_number)
            continue
        if not EMAIL_PATTERN.match(email):
            logger.warning(f"Row {line_number}: invalid email {email!r}")
            skipped_rows.append(line_number)
            continue

        attendees.append(
            Attendee(
                name=name,
                email=email,
                student_id=student_id,
                ticket_count=parse_ticket_count(_cell(values, columns.ticket_count)),
                guest_name=_cell(values, columns.guest_name) or None,
                guest_school=_cell(values, columns.guest_school) or None,
            )
        )

    logger.info(f"Parsed roster: {len(attendees)} accepted, {len(skipped_rows)} skipped")

    if not attendees:
        raise RosterImportError(
            "no_valid_rows",
            f"No valid attendee records found. {len(skipped_rows)} rows were skipped "
            "due to missing or invalid data.",
        )

    return ParsedRoster(
        attendees=attendees,
        headers=raw_headers,
        skipped=len(skipped_rows),
        skipped_rows=skipped_rows,
    )
