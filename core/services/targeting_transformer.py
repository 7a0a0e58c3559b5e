"""Free-text audience description -> ad set targeting.

Parsing is best effort: anything that cannot be understood falls back to a
broad default (18-65, all genders) and the transformer never raises.

Interest ids in INTEREST_KEYWORDS are placeholders. They are not verified
against Facebook's targeting taxonomy, so the ads API may reject them for
some accounts.
"""

import re
from typing import Iterable, List, Optional

import structlog

from adapters.meta.models import (
    ALL_GENDERS,
    GENDER_FEMALE,
    GENDER_MALE,
    GeoLocations,
    Interest,
    TargetingSpec,
)
from core.models.campaign import TargetingOverrides

logger = structlog.get_logger(__name__)

MIN_AGE = 18
MAX_AGE = 65

_AGE_RANGE = re.compile(r"\b(\d{1,3})\s*(?:to|-|–|—)\s*(\d{1,3})\b", re.IGNORECASE)
_AGE_PLUS = re.compile(r"\b(\d{1,3})\s*\+")
_GENDER_WORD = re.compile(r"\b(males?|females?|men|women|man|woman)\b", re.IGNORECASE)
_FEMALE_WORDS = {"female", "females", "woman", "women"}

# Abbreviations are case-sensitive so the pronoun "us" does not select a country
_COUNTRY_PATTERNS = [
    ("US", re.compile(r"\b(?:US|USA|U\.S\.)(?=\W|$)")),
    ("US", re.compile(r"\b(?:united states|america)\b", re.IGNORECASE)),
    ("CA", re.compile(r"\bcanada\b", re.IGNORECASE)),
    ("GB", re.compile(r"\bUK\b")),
    ("GB", re.compile(r"\b(?:united kingdom|great britain|britain|england)\b", re.IGNORECASE)),
    ("AU", re.compile(r"\baustralia\b", re.IGNORECASE)),
]

INTEREST_KEYWORDS: dict[str, tuple[str, str]] = {
    "shopping": ("6003139266461", "Shopping"),
    "fitness": ("6003384248805", "Fitness and wellness"),
    "exercise": ("6003384248805", "Fitness and wellness"),
    "health": ("6003277229526", "Health"),
    "wellness": ("6003384248805", "Fitness and wellness"),
    "travel": ("6003430696269", "Travel"),
    "food": ("6003266061909", "Food"),
    "cooking": ("6003659420716", "Cooking"),
    "fashion": ("6003348604581", "Fashion"),
    "beauty": ("6002867432822", "Beauty"),
    "technology": ("6003985771306", "Technology"),
    "tech": ("6003985771306", "Technology"),
    "software": ("6003985771306", "Technology"),
    "business": ("6003402305839", "Business"),
    "entrepreneur": ("6003371567474", "Entrepreneurship"),
    "entrepreneurship": ("6003371567474", "Entrepreneurship"),
    "startup": ("6003371567474", "Entrepreneurship"),
    "finance": ("6003012317397", "Personal finance"),
    "money": ("6003012317397", "Personal finance"),
    "budget": ("6003012317397", "Personal finance"),
    "investing": ("6003388314512", "Investment"),
    "investment": ("6003388314512", "Investment"),
    "parenting": ("6003232518610", "Parenting"),
    "parent": ("6003232518610", "Parenting"),
    "education": ("6003327060545", "Education"),
    "learning": ("6003327060545", "Education"),
    "pet": ("6004037726009", "Pets"),
    "dog": ("6003332344237", "Dogs"),
    "cat": ("6003159378782", "Cats"),
    "gaming": ("6003940339466", "Video games"),
    "music": ("6003020834693", "Music"),
    "sport": ("6003269553527", "Sports"),
    "home": ("6003343485089", "Home and garden"),
    "garden": ("6003343485089", "Home and garden"),
    "gardening": ("6003343485089", "Home and garden"),
    "productivity": ("6003204154960", "Productivity"),
    "time": ("6003204154960", "Productivity"),
    "marketing": ("6003279598823", "Digital marketing"),
    "sleep": ("6003277229526", "Health"),
    "stress": ("6003384248805", "Fitness and wellness"),
}


def _clamp_age(value: int) -> int:
    return max(MIN_AGE, min(MAX_AGE, value))


def _ordered_ages(age_min: int, age_max: int) -> tuple[int, int]:
    age_min, age_max = _clamp_age(age_min), _clamp_age(age_max)
    return (age_max, age_min) if age_min > age_max else (age_min, age_max)


def parse_age_range(text: str) -> tuple[int, int]:
    match = _AGE_RANGE.search(text)
    if match:
        return _ordered_ages(int(match.group(1)), int(match.group(2)))
    match = _AGE_PLUS.search(text)
    if match:
        return _ordered_ages(int(match.group(1)), MAX_AGE)
    logger.debug("targeting_age_default", demographics=text)
    return MIN_AGE, MAX_AGE


def parse_genders(text: str) -> List[int]:
    words = {w.lower() for w in _GENDER_WORD.findall(text)}
    has_female = bool(words & _FEMALE_WORDS)
    has_male = bool(words - _FEMALE_WORDS)
    if has_female and not has_male:
        return [GENDER_FEMALE]
    if has_male and not has_female:
        return [GENDER_MALE]
    return list(ALL_GENDERS)


def parse_countries(text: str) -> List[str]:
    found: List[str] = []
    for code, pattern in _COUNTRY_PATTERNS:
        if code not in found and pattern.search(text):
            found.append(code)
    return found


def _keyword_candidates(word: str) -> Iterable[str]:
    yield word
    if word.endswith("s") and len(word) > 3:
        yield word[:-1]


def match_interests(phrases: Iterable[str]) -> List[Interest]:
    """Map words in ``phrases`` to interests from the keyword table, unique by id."""
    interests: List[Interest] = []
    seen: set[str] = set()
    for phrase in phrases:
        for word in re.findall(r"[a-z]+", (phrase or "").lower()):
            for candidate in _keyword_candidates(word):
                entry = INTEREST_KEYWORDS.get(candidate)
                if entry and entry[0] not in seen:
                    seen.add(entry[0])
                    interests.append(Interest(id=entry[0], name=entry[1]))
                    break
    return interests


def _override_genders(values: List[str]) -> List[int]:
    genders: set[int] = set()
    for value in values:
        key = str(value).strip().lower()
        if key in ("all", "both", "0"):
            return list(ALL_GENDERS)
        if key in ("male", "men", "man", "1"):
            genders.add(GENDER_MALE)
        elif key in ("female", "women", "woman", "2"):
            genders.add(GENDER_FEMALE)
        else:
            logger.debug("targeting_unknown_gender_override", value=value)
    return sorted(genders) or list(ALL_GENDERS)


def _override_interests(values: List[str]) -> List[Interest]:
    interests = match_interests(v for v in values if not str(v).isdigit())
    known = {i.id for i in interests}
    for value in values:
        # Raw taxonomy ids pass straight through
        if str(value).isdigit() and str(value) not in known:
            known.add(str(value))
            interests.append(Interest(id=str(value), name=str(value)))
    return interests


def _override_countries(values: List[str]) -> List[str]:
    countries: List[str] = []
    for value in values:
        text = str(value).strip()
        codes = [text.upper()] if len(text) == 2 and text.isalpha() else parse_countries(text)
        for code in codes:
            if code == "UK":
                code = "GB"
            if code not in countries:
                countries.append(code)
    return countries


class TargetingTransformer:
    def transform(
        self,
        demographics: str,
        pain_points: Optional[List[str]] = None,
        overrides: Optional[TargetingOverrides] = None,
        default_countries: Optional[List[str]] = None,
    ) -> TargetingSpec:
        text = demographics or ""
        age_min, age_max = parse_age_range(text)
        genders = parse_genders(text)
        countries = parse_countries(text) or list(default_countries or [])
        interests = match_interests(pain_points or [])

        if overrides:
            if overrides.age_min is not None or overrides.age_max is not None:
                age_min, age_max = _ordered_ages(
                    overrides.age_min if overrides.age_min is not None else age_min,
                    overrides.age_max if overrides.age_max is not None else age_max,
                )
            if overrides.genders:
                genders = _override_genders(overrides.genders)
            if overrides.interests:
                interests = _override_interests(overrides.interests)
            if overrides.countries:
                countries = _override_countries(overrides.countries) or countries

        spec = TargetingSpec(
            age_min=age_min,
            age_max=age_max,
            genders=genders,
            geo_locations=GeoLocations(countries=countries) if countries else None,
            interests=interests,
        )
        logger.debug(
            "targeting_transformed",
            age_min=age_min,
            age_max=age_max,
            genders=genders,
            countries=countries,
            interests=len(interests),
        )
        return spec
