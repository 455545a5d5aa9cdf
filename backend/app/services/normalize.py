"""
Normalization helpers shared by scrapers and scoring strategies.

Scrapers see wildly different text for the same facts ("$60 - $80 an hour",
"3 days ago", "Acme, Inc."). These helpers turn that text into the canonical
values stored on RawJob, and provide the string-distance primitives used by
location matching.
"""

import hashlib
import re
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from bs4 import BeautifulSoup

from app.schemas.job import JobType, Salary, SalaryPeriod

# Multipliers to a yearly basis
PERIOD_TO_YEARLY = {
    SalaryPeriod.HOURLY: 2080,
    SalaryPeriod.DAILY: 260,
    SalaryPeriod.WEEKLY: 52,
    SalaryPeriod.MONTHLY: 12,
    SalaryPeriod.YEARLY: 1,
}

CURRENCY_SYMBOLS = {"$": "USD", "€": "EUR", "£": "GBP"}

# Checked in order; first match wins
PERIOD_PATTERNS = [
    (SalaryPeriod.HOURLY, r"/\s*h(ou)?r|per hour|an hour|hourly|\bhr\b"),
    (SalaryPeriod.DAILY, r"/\s*day|per day|a day|daily"),
    (SalaryPeriod.WEEKLY, r"/\s*w(ee)?k|per week|a week|weekly"),
    (SalaryPeriod.MONTHLY, r"/\s*mo(nth)?|per month|a month|monthly"),
    (SalaryPeriod.YEARLY, r"/\s*y(ea)?r|per year|a year|annual|yearly"),
]

AMOUNT_PATTERN = re.compile(r"(\d{1,3}(?:,\d{3})+|\d+(?:\.\d+)?)\s*(k)?\b", re.IGNORECASE)

REMOTE_PATTERN = re.compile(
    r"\b(remote|work from home|wfh|anywhere|distributed|virtual)\b", re.IGNORECASE
)

COMPANY_SUFFIX_PATTERN = re.compile(
    r",?\s+(inc|llc|ltd|limited|corp|corporation|co|plc|gmbh)\.?$", re.IGNORECASE
)

JOB_TYPE_PATTERNS = [
    (JobType.FULL_TIME, r"full[\s-]?time"),
    (JobType.PART_TIME, r"part[\s-]?time"),
    (JobType.CONTRACT, r"contract|contractor|freelance"),
    (JobType.TEMPORARY, r"temporary|\btemp\b"),
    (JobType.INTERNSHIP, r"intern(ship)?"),
]

RELATIVE_DATE_PATTERN = re.compile(
    r"(\d+)\+?\s*(minute|min|hour|hr|day|week|month)s?\s+ago", re.IGNORECASE
)


def levenshtein(a: str, b: str) -> int:
    """Edit distance between two strings. O(len(a) * len(b))."""
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            cost = 0 if char_a == char_b else 1
            current.append(min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + cost,
            ))
        previous = current
    return previous[-1]


def similarity(a: str, b: str) -> float:
    """Normalized similarity in [0, 1] derived from edit distance."""
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1.0 - levenshtein(a, b) / longest


def normalize_text(text: Optional[str]) -> str:
    """Lowercase, drop punctuation other than commas, collapse whitespace."""
    if not text:
        return ""
    cleaned = re.sub(r"[^\w\s,+#]", " ", text.lower())
    cleaned = re.sub(r"\s*,\s*", ", ", cleaned)
    return re.sub(r"\s+", " ", cleaned).strip(" ,")


def is_remote(location: Optional[str]) -> bool:
    return bool(location and REMOTE_PATTERN.search(location))


def normalize_location(location: Optional[str]) -> str:
    if not location:
        return ""
    if is_remote(location):
        return "Remote"
    cleaned = re.sub(r"\([^)]*\)", "", location)
    parts = [p.strip() for p in cleaned.split(",") if p.strip()]
    return ", ".join(parts[:2])


def normalize_job_title(title: Optional[str]) -> str:
    if not title:
        return ""
    cleaned = re.sub(r"\([^)]*\)", "", title)
    return re.sub(r"\s+", " ", cleaned).strip()


def normalize_company_name(company: Optional[str]) -> str:
    if not company:
        return ""
    cleaned = re.sub(r"\s+", " ", company).strip()
    return COMPANY_SUFFIX_PATTERN.sub("", cleaned).strip()


def strip_html(html: Optional[str]) -> str:
    if not html:
        return ""
    text = BeautifulSoup(html, "lxml").get_text(" ")
    return re.sub(r"\s+", " ", text).strip()


def truncate_description(text: Optional[str], max_length: int = 2000) -> str:
    """Cut at the last word boundary before max_length and append '...'."""
    if not text:
        return ""
    text = text.strip()
    if len(text) <= max_length:
        return text
    cut = text[:max_length]
    last_space = cut.rfind(" ")
    if last_space > max_length * 0.8:
        cut = cut[:last_space]
    return cut.rstrip() + "..."


def generate_job_id(source: str, url: str) -> str:
    digest = hashlib.md5(f"{source}-{url}".encode()).hexdigest()[:12]
    return f"{source}-{digest}"


def detect_job_type(text: Optional[str]) -> Optional[JobType]:
    if not text:
        return None
    lower = text.lower()
    for job_type, pattern in JOB_TYPE_PATTERNS:
        if re.search(pattern, lower):
            return job_type
    return None


def to_yearly(amount: float, period: SalaryPeriod) -> float:
    return amount * PERIOD_TO_YEARLY.get(period, 1)


def parse_salary(text: Optional[str]) -> Optional[Salary]:
    """
    Parse free-text salary like "$150K - $200K a year" or "£45 per hour".

    Returns None when no positive amount is present. A single amount (or
    "up to X") produces a zero-width range. Yearly amounts below 1000 are
    read as thousands ("$120 - $150" yearly means 120k-150k).
    """
    if not text:
        return None

    lower = text.lower()

    currency = "USD"
    for symbol, code in CURRENCY_SYMBOLS.items():
        if symbol in text:
            currency = code
            break
    else:
        for code in ("usd", "eur", "gbp", "cad", "aud"):
            if re.search(rf"\b{code}\b", lower):
                currency = code.upper()
                break

    period = SalaryPeriod.YEARLY
    for candidate, pattern in PERIOD_PATTERNS:
        if re.search(pattern, lower):
            period = candidate
            break

    amounts: List[float] = []
    for number, thousands in AMOUNT_PATTERN.findall(text):
        value = float(number.replace(",", ""))
        if thousands:
            value *= 1000
        if value > 0:
            amounts.append(value)

    if not amounts:
        return None

    low, high = amounts[0], amounts[1] if len(amounts) > 1 else amounts[0]
    if low > high:
        low, high = high, low

    if period == SalaryPeriod.YEARLY and high < 1000:
        low, high = low * 1000, high * 1000

    return Salary(min=low, max=high, currency=currency, period=period)


def parse_posted_date(text: Optional[str], now: Optional[datetime] = None) -> datetime:
    """
    Turn "3 days ago", "30+ days ago", "today", "Just posted" or an ISO date
    into an aware datetime. Unrecognized text maps to `now`.
    """
    now = now or datetime.now(timezone.utc)
    if not text:
        return now

    lower = text.strip().lower()
    if any(token in lower for token in ("just now", "just posted", "today", "moments ago")):
        return now
    if "yesterday" in lower:
        return now - timedelta(days=1)

    match = RELATIVE_DATE_PATTERN.search(lower)
    if match:
        amount = int(match.group(1))
        unit = match.group(2)
        if unit in ("minute", "min"):
            return now - timedelta(minutes=amount)
        if unit in ("hour", "hr"):
            return now - timedelta(hours=amount)
        if unit == "day":
            return now - timedelta(days=amount)
        if unit == "week":
            return now - timedelta(weeks=amount)
        return now - timedelta(days=30 * amount)

    try:
        parsed = datetime.fromisoformat(text.strip().replace("Z", "+00:00"))
    except ValueError:
        return now
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def ensure_aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
