"""Japanese era and Western date normalization to YYYY/MM/DD."""

import calendar
import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterator, List, Optional, Tuple

from ..exceptions import UnknownEraError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Era:
    """A Japanese calendar era. Era year 1 is start_year."""
    name: str
    abbreviation: str
    start_year: int


# Newest first
ERAS: Tuple[Era, ...] = (
    Era('令和', 'R', 2019),
    Era('平成', 'H', 1989),
    Era('昭和', 'S', 1926),
    Era('大正', 'T', 1912),
    Era('明治', 'M', 1868),
)

# 元年 is the first year of an era
GANNEN = '元'

_ERA_NAMES = '|'.join(era.name for era in ERAS)
_ERA_LETTERS = ''.join(era.abbreviation for era in ERAS)

CANONICAL_DATE = re.compile(r'(\d{4})/(\d{2})/(\d{2})')

# (pattern, form) in priority order
DATE_PATTERNS = [
    (re.compile(rf'({_ERA_NAMES})\s*({GANNEN}|\d{{1,2}})\s*年\s*(\d{{1,2}})\s*月\s*(\d{{1,2}})\s*日'), 'era_long'),
    (re.compile(rf'(?<![A-Za-z])([{_ERA_LETTERS}])\s*(\d{{1,2}})([./\-])(\d{{1,2}})\3(\d{{1,2}})(?!\d)'), 'era_abbreviated'),
    (re.compile(r'(?<!\d)(\d{4})([/\-.])(\d{1,2})\2(\d{1,2})(?!\d)'), 'western'),
    (re.compile(r'(?<!\d)(\d{4})\s*年\s*(\d{1,2})\s*月\s*(\d{1,2})\s*日'), 'western_kanji'),
    (re.compile(r'(?<!\d)(\d{1,2})([/\-])(\d{1,2})\2(\d{4})(?!\d)'), 'month_first'),
    (re.compile(r'(?<!\d)(\d{2})([/\-.])(\d{1,2})\2(\d{1,2})(?!\d)'), 'two_digit_year'),
    (re.compile(r'(?<!\d)(\d{2})\s*年\s*(\d{1,2})\s*月\s*(\d{1,2})\s*日'), 'two_digit_year'),
]


@dataclass(frozen=True)
class CurrentEra:
    name: str
    year: int


@dataclass(frozen=True)
class DateMatch:
    """A date-like substring and its canonical form."""
    raw: str
    normalized: str
    form: str
    start: int


def find_era(era: str) -> Era:
    """Look an era up by exact name or abbreviation letter."""
    for candidate in ERAS:
        if era == candidate.name or era == candidate.abbreviation:
            return candidate
    raise UnknownEraError(era)


def format_date(year: int, month: int, day: int) -> Optional[str]:
    """Format as YYYY/MM/DD, or None when month or day is out of range."""
    if not (1 <= month <= 12 and 1 <= day <= 31):
        return None
    return f"{year:04d}/{month:02d}/{day:02d}"


def is_calendar_date(candidate: str) -> bool:
    """True for an exact YYYY/MM/DD string naming a real day."""
    match = CANONICAL_DATE.fullmatch(candidate or "")
    if not match:
        return False
    year, month, day = (int(part) for part in match.groups())
    if not 1 <= month <= 12:
        return False
    return 1 <= day <= calendar.monthrange(year, month)[1]


class DateNormalizer:
    """Converts Western and Japanese-era date strings to YYYY/MM/DD."""

    # Receipts older than this many years are treated as misreads
    MAX_AGE_YEARS = 10
    MAX_FUTURE_YEARS = 1

    def __init__(self, clock: Callable[[], datetime] = datetime.now):
        self.clock = clock

    def era_to_western(self, era: str, era_year: int) -> int:
        """
        Convert an era year to a Western year.

        Args:
            era: Era name (令和) or abbreviation letter (R)
            era_year: Year within the era, starting at 1

        Returns:
            Western calendar year

        Raises:
            UnknownEraError: era is not in the era table
            ValueError: era_year is below 1
        """
        start_year = find_era(era).start_year
        if era_year < 1:
            raise ValueError(f"Era year must be at least 1, got {era_year}")
        return start_year + era_year - 1

    def current_era(self) -> CurrentEra:
        """Era in effect for the clock's current year."""
        current_year = self.clock().year
        for era in ERAS:
            if era.start_year <= current_year:
                return CurrentEra(name=era.name, year=current_year - era.start_year + 1)
        oldest = ERAS[-1]
        return CurrentEra(name=oldest.name, year=current_year - oldest.start_year + 1)

    def normalize(self, raw: str) -> str:
        """
        Normalize a date-like string to YYYY/MM/DD.

        Returns the input unchanged when no date form is recognized. Callers that
        need to tell the two apart re-check the result with is_valid_date.
        """
        for match in self._scan(raw or ""):
            return match.normalized
        return raw

    def find_dates(self, text: str) -> List[DateMatch]:
        """All non-overlapping dates in text, in reading order."""
        return sorted(self._scan(text or ""), key=lambda m: m.start)

    def is_valid_date(self, candidate: str) -> bool:
        """
        Check that candidate is a real, recent YYYY/MM/DD date.

        The year must fall between MAX_AGE_YEARS before and MAX_FUTURE_YEARS
        after the current year.
        """
        if not is_calendar_date(candidate):
            return False

        year = int(candidate[:4])
        current_year = self.clock().year
        return current_year - self.MAX_AGE_YEARS <= year <= current_year + self.MAX_FUTURE_YEARS

    def _scan(self, text: str) -> Iterator[DateMatch]:
        """Yield dates in pattern priority order, skipping spans already claimed."""
        claimed: List[Tuple[int, int]] = []

        for pattern, form in DATE_PATTERNS:
            for match in pattern.finditer(text):
                start, end = match.span()
                if any(start < c_end and c_start < end for c_start, c_end in claimed):
                    continue

                normalized = self._convert(match, form)
                if normalized is None:
                    logger.debug(f"Ignoring out-of-range date: {match.group()}")
                    continue

                claimed.append((start, end))
                yield DateMatch(raw=match.group(), normalized=normalized, form=form, start=start)

    def _convert(self, match: re.Match, form: str) -> Optional[str]:
        groups = match.groups()

        if form == 'era_long':
            era, year, month, day = groups
            era_year = 1 if year == GANNEN else int(year)
        elif form == 'era_abbreviated':
            era, year, _, month, day = groups
            era_year = int(year)
        else:
            era = None

        if era is not None:
            if era_year < 1:
                return None
            return format_date(self.era_to_western(era, era_year), int(month), int(day))

        if form == 'month_first':
            month, _, day, year = groups
            return format_date(int(year), int(month), int(day))

        if len(groups) == 4:
            year, _, month, day = groups
        else:
            year, month, day = groups

        year_int = int(year)
        if form == 'two_digit_year':
            year_int += 2000
        return format_date(year_int, int(month), int(day))
