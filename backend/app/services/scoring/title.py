"""
Title relevance scoring.

Algorithm:
    1. Tokenize query and title (case-insensitive, "C++"/"C#" preserved,
       "front-end"/"full stack" folded to single tokens).
    2. Split off seniority words (intern ... principal) from role keywords.
    3. Query coverage = sum of per-keyword credit / number of query keywords
         exact keyword in title      1.0
         role synonym in title       0.85  (engineer ~ developer)
         related specialization      0.6   (software ~ frontend)
    4. Coverage is mapped per band, then seniority bonus/penalty:
         strong  (coverage >= 0.66)   76 .. 92
         partial (0 < coverage)       41 .. 74

Exact (or token-identical) titles short-circuit to 95. An empty query
scores 0 with zero confidence.
"""

import re
from datetime import datetime
from typing import Dict, List, Optional, Set, Tuple

from app.schemas import RawJob, SearchCriteria
from app.services.scoring.base import ScoringStrategy, StrategyResult

EXACT_MATCH_SCORE = 95
NO_OVERLAP_SCORE = 10
PARTIAL_MIN_SCORE = 41
PARTIAL_MAX_SCORE = 74
STRONG_MIN_SCORE = 76
SENIORITY_MATCH_BONUS = 10
SENIORITY_STEP_PENALTY = 15
SENIORITY_MAX_PENALTY = 40
KEYWORD_BONUS_PER_MATCH = 3
KEYWORD_BONUS_CAP = 10
NON_EXACT_CAP = 92

STRONG_COVERAGE = 0.66

SYNONYM_CREDIT = 0.85
RELATED_CREDIT = 0.6

STOP_WORDS = {"a", "an", "and", "or", "the", "of", "for", "in", "with", "to", "at", "on", "-"}

# Ordered junior -> senior
SENIORITY_ORDER = ["intern", "junior", "mid-level", "senior", "staff", "lead", "principal"]
SENIORITY_ALIASES = {
    "intern": "intern",
    "internship": "intern",
    "junior": "junior",
    "jr": "junior",
    "entry-level": "junior",
    "mid-level": "mid-level",
    "mid": "mid-level",
    "intermediate": "mid-level",
    "senior": "senior",
    "sr": "senior",
    "staff": "staff",
    "lead": "lead",
    "principal": "principal",
}

# Role word -> canonical role
ROLE_SYNONYMS = {
    "engineer": "engineer",
    "developer": "engineer",
    "programmer": "engineer",
    "dev": "engineer",
    "swe": "engineer",
    "architect": "architect",
    "manager": "manager",
    "mgr": "manager",
    "analyst": "analyst",
    "scientist": "scientist",
    "designer": "designer",
    "administrator": "administrator",
    "admin": "administrator",
    "js": "javascript",
    "javascript": "javascript",
    "ts": "typescript",
    "typescript": "typescript",
    "golang": "go",
    "k8s": "kubernetes",
    "ml": "machine-learning",
    "ai": "artificial-intelligence",
    "devops": "devops",
    "sre": "devops",
}

# Specializations that count as partial evidence for a broader keyword
RELATED_KEYWORDS = {
    "software": {"frontend", "backend", "fullstack", "web", "mobile", "application", "platform"},
    "frontend": {"software", "web", "ui", "fullstack"},
    "backend": {"software", "api", "platform", "fullstack"},
    "fullstack": {"software", "frontend", "backend", "web"},
    "web": {"frontend", "fullstack", "software"},
    "mobile": {"ios", "android", "software"},
    "data": {"analytics", "machine-learning", "database"},
}

COMPOUND_TERMS = [
    (r"\bfront[\s-]end\b", "frontend"),
    (r"\bback[\s-]end\b", "backend"),
    (r"\bfull[\s-]stack\b", "fullstack"),
    (r"\bmid[\s-]?level\b", "mid-level"),
    (r"\bentry[\s-]level\b", "entry-level"),
    (r"\bmachine learning\b", "machine-learning"),
    (r"\bsr\.", "sr"),
    (r"\bjr\.", "jr"),
]

TOKEN_PATTERN = re.compile(r"[a-z0-9+#]+(?:-[a-z0-9+#]+)*")


def tokenize(text: str) -> List[str]:
    lower = text.lower()
    for pattern, replacement in COMPOUND_TERMS:
        lower = re.sub(pattern, replacement, lower)
    return [t for t in TOKEN_PATTERN.findall(lower) if t not in STOP_WORDS]


def split_title(text: str) -> Tuple[List[str], Set[str]]:
    """Return (keywords, seniority levels) for a title or query."""
    keywords: List[str] = []
    levels: Set[str] = set()
    for token in tokenize(text):
        level = SENIORITY_ALIASES.get(token)
        if level:
            levels.add(level)
        elif token not in keywords:
            keywords.append(token)
    return keywords, levels


def canonical(token: str) -> str:
    return ROLE_SYNONYMS.get(token, token)


def _highest_level(levels: Set[str]) -> int:
    return max(SENIORITY_ORDER.index(level) for level in levels)


def _coverage_score(coverage: float) -> float:
    """Map coverage in (0, 1] onto the partial or strong score band."""
    if coverage >= STRONG_COVERAGE:
        fraction = (min(1.0, coverage) - STRONG_COVERAGE) / (1 - STRONG_COVERAGE)
        return STRONG_MIN_SCORE + (NON_EXACT_CAP - STRONG_MIN_SCORE) * fraction
    fraction = coverage / STRONG_COVERAGE
    return PARTIAL_MIN_SCORE + (PARTIAL_MAX_SCORE - PARTIAL_MIN_SCORE) * fraction


def _keyword_credit(
    query_keywords: List[str],
    title_keywords: List[str],
) -> Tuple[float, Dict[str, List[str]]]:
    title_set = set(title_keywords)
    title_canonical = {canonical(t) for t in title_keywords}

    matches: Dict[str, List[str]] = {"exact": [], "synonym": [], "related": []}
    credit = 0.0
    for keyword in query_keywords:
        if keyword in title_set:
            credit += 1.0
            matches["exact"].append(keyword)
        elif canonical(keyword) in title_canonical:
            credit += SYNONYM_CREDIT
            matches["synonym"].append(keyword)
        elif RELATED_KEYWORDS.get(keyword, set()) & title_set:
            credit += RELATED_CREDIT
            matches["related"].append(keyword)
    return credit, matches


class TitleRelevanceStrategy(ScoringStrategy):
    name = "titleRelevance"

    def score(
        self,
        job: RawJob,
        criteria: SearchCriteria,
        now: Optional[datetime] = None,
    ) -> StrategyResult:
        query = (criteria.query or "").strip()
        if not query:
            return StrategyResult(score=0, confidence=0, reasons=["No search query provided"])

        title = job.title or ""
        query_keywords, query_levels = split_title(query)
        title_keywords, title_levels = split_title(title)
        reasons: List[str] = []

        if query.lower() == title.strip().lower() or (
            query_keywords
            and sorted(query_keywords) == sorted(title_keywords)
            and query_levels == title_levels
        ):
            score = float(EXACT_MATCH_SCORE)
            confidence = 0.95
            reasons.append("Exact title match")
            details = {"coverage": 1.0}
        else:
            score, confidence, details = self._graded_score(
                query_keywords, query_levels, title_keywords, title_levels, reasons
            )

        bonus, matched = self._keyword_bonus(job, criteria)
        if bonus:
            score += bonus
            reasons.append(f"Matches keywords: {', '.join(matched[:3])}")
            details["matchedKeywords"] = matched

        return StrategyResult(
            score=min(100.0, score),
            confidence=confidence,
            reasons=reasons,
            details=details,
        )

    def _graded_score(
        self,
        query_keywords: List[str],
        query_levels: Set[str],
        title_keywords: List[str],
        title_levels: Set[str],
        reasons: List[str],
    ):
        if query_keywords:
            credit, matches = _keyword_credit(query_keywords, title_keywords)
            coverage = credit / len(query_keywords)
        else:
            # Query is seniority only, e.g. "Senior"
            matches = {"exact": [], "synonym": [], "related": []}
            coverage = 1.0 if query_levels & title_levels else 0.0

        if coverage == 0:
            score = float(NO_OVERLAP_SCORE)
            reasons.append("Title does not match search keywords")
        else:
            score = _coverage_score(coverage)
            if coverage >= STRONG_COVERAGE:
                reasons.append("Strong keyword match")
            else:
                reasons.append("Partial keyword match")
            if matches["synonym"]:
                reasons.append("Role synonym match")
            if matches["related"]:
                reasons.append("Related specialization")

        if query_levels and title_levels:
            if query_levels & title_levels:
                score += SENIORITY_MATCH_BONUS
                reasons.append("Seniority level match")
            else:
                distance = abs(_highest_level(query_levels) - _highest_level(title_levels))
                penalty = min(SENIORITY_MAX_PENALTY, SENIORITY_STEP_PENALTY * distance)
                # Never zero out a title that shares keywords
                floor = NO_OVERLAP_SCORE if coverage > 0 else 0
                score = max(floor, score - penalty)
                reasons.append(
                    f"Seniority mismatch ({'/'.join(sorted(title_levels))} "
                    f"vs {'/'.join(sorted(query_levels))})"
                )

        if matches["synonym"]:
            score = max(score, 65.0)

        score = min(float(NON_EXACT_CAP), score)
        confidence = 0.7 if coverage == 0 else 0.5 + 0.4 * min(1.0, coverage)

        details = {
            "coverage": round(coverage, 3),
            "queryKeywords": query_keywords,
            "titleKeywords": title_keywords,
            "exactMatches": matches["exact"],
            "synonymMatches": matches["synonym"],
        }
        return score, confidence, details

    def _keyword_bonus(self, job: RawJob, criteria: SearchCriteria):
        if not criteria.keywords:
            return 0, []
        haystack = f"{job.title} {job.description}".lower()
        matched = [
            kw for kw in criteria.keywords
            if kw.strip() and re.search(rf"(?<![\w+#]){re.escape(kw.strip().lower())}(?![\w+#])", haystack)
        ]
        bonus = min(KEYWORD_BONUS_CAP, KEYWORD_BONUS_PER_MATCH * len(matched))
        return bonus, matched
