"""
Location scoring.

Bands:
    - Exact match (normalized text)        100
    - Remote job                           100
    - Same city (fuzzy, typo tolerant)      90-95
    - Same state/region, different city     70
    - Same country, different region        40
    - Different location                    25
    - No criteria location                  50 (neutral)

City comparison uses edit-distance similarity so "San Fransisco" still
matches "San Francisco". Regions are canonicalized so "California" and "CA"
compare equal.
"""

from datetime import datetime
from typing import Optional, Tuple

from app.schemas import RawJob, SearchCriteria
from app.services.normalize import is_remote, normalize_text, similarity
from app.services.scoring.base import ScoringStrategy, StrategyResult

CITY_SIMILARITY_THRESHOLD = 0.8

SAME_CITY_SCORE = 90
SAME_CITY_SAME_REGION_SCORE = 95
SAME_REGION_SCORE = 70
SAME_COUNTRY_SCORE = 40
DIFFERENT_LOCATION_SCORE = 25
UNKNOWN_JOB_LOCATION_SCORE = 40
NEUTRAL_SCORE = 50

US_STATES = {
    "alabama": "al", "alaska": "ak", "arizona": "az", "arkansas": "ar",
    "california": "ca", "colorado": "co", "connecticut": "ct", "delaware": "de",
    "florida": "fl", "georgia": "ga", "hawaii": "hi", "idaho": "id",
    "illinois": "il", "indiana": "in", "iowa": "ia", "kansas": "ks",
    "kentucky": "ky", "louisiana": "la", "maine": "me", "maryland": "md",
    "massachusetts": "ma", "michigan": "mi", "minnesota": "mn",
    "mississippi": "ms", "missouri": "mo", "montana": "mt", "nebraska": "ne",
    "nevada": "nv", "new hampshire": "nh", "new jersey": "nj",
    "new mexico": "nm", "new york": "ny", "north carolina": "nc",
    "north dakota": "nd", "ohio": "oh", "oklahoma": "ok", "oregon": "or",
    "pennsylvania": "pa", "rhode island": "ri", "south carolina": "sc",
    "south dakota": "sd", "tennessee": "tn", "texas": "tx", "utah": "ut",
    "vermont": "vt", "virginia": "va", "washington": "wa",
    "west virginia": "wv", "wisconsin": "wi", "wyoming": "wy",
    "district of columbia": "dc",
}
STATE_CODES = set(US_STATES.values())

COUNTRY_ALIASES = {
    "us": "united states", "usa": "united states",
    "united states": "united states", "united states of america": "united states",
    "uk": "united kingdom", "united kingdom": "united kingdom", "england": "united kingdom",
    "canada": "canada", "germany": "germany", "india": "india", "australia": "australia",
}


def canonical_region(region: Optional[str]) -> Optional[str]:
    if not region:
        return None
    return US_STATES.get(region, region)


def parse_location(location: str) -> Tuple[str, Optional[str], Optional[str]]:
    """Split normalized "city, region, country" text into its parts."""
    parts = [p.strip() for p in normalize_text(location).split(",") if p.strip()]
    if not parts:
        return "", None, None
    city = parts[0]
    region = canonical_region(parts[1]) if len(parts) > 1 else None
    country = parts[2] if len(parts) > 2 else None
    return city, region, country


def _lone_region(city: str, region: Optional[str]) -> Tuple[str, Optional[str]]:
    """A lone state name ("California") is a region, not a city."""
    if region is None and (city in US_STATES or city in STATE_CODES):
        return "", canonical_region(city)
    return city, region


def infer_country(region: Optional[str], country: Optional[str]) -> Optional[str]:
    if country:
        return COUNTRY_ALIASES.get(country, country)
    if region in STATE_CODES:
        return "united states"
    return COUNTRY_ALIASES.get(region or "")


def _cities_match(a: str, b: str) -> bool:
    if not a or not b:
        return False
    if a == b:
        return True
    # "new york city" vs "new york"
    if f" {a} " in f" {b} " or f" {b} " in f" {a} ":
        return True
    return similarity(a, b) >= CITY_SIMILARITY_THRESHOLD


class LocationStrategy(ScoringStrategy):
    name = "location"

    def score(
        self,
        job: RawJob,
        criteria: SearchCriteria,
        now: Optional[datetime] = None,
    ) -> StrategyResult:
        targets = criteria.criteria_locations()
        if not targets:
            return StrategyResult(
                score=NEUTRAL_SCORE,
                confidence=0.5,
                reasons=["No location preference specified"],
            )

        if is_remote(job.location):
            return StrategyResult(
                score=100,
                confidence=1.0,
                reasons=["Remote position - works from any location"],
                details={"remote": True},
            )

        if not normalize_text(job.location):
            return StrategyResult(
                score=UNKNOWN_JOB_LOCATION_SCORE,
                confidence=0.4,
                reasons=["Job location not specified"],
            )

        best: Optional[StrategyResult] = None
        for target in targets:
            result = self._score_against(job.location, target)
            if best is None or result.score > best.score:
                best = result
        return best

    def _score_against(self, job_location: str, target: str) -> StrategyResult:
        details = {"jobLocation": job_location, "matchedAgainst": target}

        if normalize_text(job_location) == normalize_text(target):
            return StrategyResult(
                score=100,
                confidence=0.95,
                reasons=[f"Exact location match: {job_location}"],
                details=details,
            )

        if is_remote(target):
            return StrategyResult(
                score=DIFFERENT_LOCATION_SCORE,
                confidence=0.8,
                reasons=["Not a remote position"],
                details=details,
            )

        job_city, job_region, job_country = parse_location(job_location)
        target_city, target_region, target_country = parse_location(target)
        # "New York" may be the city or the state
        if not _cities_match(job_city, target_city):
            job_city, job_region = _lone_region(job_city, job_region)
            target_city, target_region = _lone_region(target_city, target_region)

        if _cities_match(job_city, target_city):
            same_region = bool(job_region and target_region and job_region == target_region)
            return StrategyResult(
                score=SAME_CITY_SAME_REGION_SCORE if same_region else SAME_CITY_SCORE,
                confidence=0.9,
                reasons=[f"Located in same city as {target}"],
                details=details,
            )

        if job_region and target_region and job_region == target_region:
            return StrategyResult(
                score=SAME_REGION_SCORE,
                confidence=0.8,
                reasons=[f"Located in same state ({job_region.upper()})"],
                details=details,
            )

        country = infer_country(job_region, job_country)
        if country and country == infer_country(target_region, target_country):
            return StrategyResult(
                score=SAME_COUNTRY_SCORE,
                confidence=0.6,
                reasons=[f"Different location, same country ({country.title()}): {job_location}"],
                details=details,
            )

        return StrategyResult(
            score=DIFFERENT_LOCATION_SCORE,
            confidence=0.85,
            reasons=[f"Different location: {job_location} (preferred {target})"],
            details=details,
        )
