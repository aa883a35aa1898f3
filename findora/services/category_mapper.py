import re
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

# The first tag (in provider order) with a keyword among its tokens decides the
# category; within one tag, earlier rules win.
CATEGORY_RULES: List[Tuple[str, Tuple[str, ...]]] = [
    ("Restaurant", ("restaurant", "meal_takeaway", "meal_delivery", "fast_food")),
    ("Cafe", ("cafe", "coffee", "bakery")),
    ("Bar", ("bar", "pub", "night_club", "biergarten")),
    ("Lodging", ("lodging", "hotel", "accomodation", "hostel", "motel", "campsite")),
    ("Shopping", ("shop", "store", "mall", "market", "supermarket")),
    ("Entertainment", ("amusement", "entertainment", "theatre", "cinema", "movie_theater",
                       "museum", "art_gallery", "zoo", "aquarium", "tourist_attraction", "cultural")),
    ("Health & Fitness", ("gym", "spa", "sport", "stadium", "hospital", "pharmacy", "doctor", "health")),
    ("Services", ("bank", "atm", "post_office", "car_repair", "laundry", "commercial", "finance")),
]

# Generic tags that both providers attach to cafes and bars as well; consulted
# only when no tag matched CATEGORY_RULES.
FALLBACK_RULES: List[Tuple[str, Tuple[str, ...]]] = [
    ("Restaurant", ("food",)),
]

# User-facing category label -> provider query vocabulary.
GOOGLE_CATEGORY_TYPES: Dict[str, str] = {
    "restaurant": "restaurant",
    "cafe": "cafe",
    "bar": "bar",
    "shopping": "shopping_mall",
    "entertainment": "tourist_attraction",
    "health & fitness": "gym",
    "services": "point_of_interest",
    "lodging": "lodging",
}

OPENTRIPMAP_CATEGORY_KINDS: Dict[str, str] = {
    "restaurant": "foods",
    "cafe": "foods",
    "bar": "foods",
    "shopping": "shops",
    "entertainment": "entertainment,amusements,cultural,theatres",
    "health & fitness": "sport",
    "services": "commercial",
    "lodging": "accomodations",
    "other": "interesting_places",
}


def _tokens(tag: str) -> set:
    """'theatres_and_entertainments' -> the tag, its parts, and their singular forms."""
    tag = tag.strip().lower()
    parts = re.split(r"[_\-\s]+", tag)
    tokens = {tag, *parts}
    tokens.update(part[:-1] for part in parts if len(part) > 3 and part.endswith("s"))
    return tokens


class CategoryMapper:
    """Translates user-facing categories to and from one provider's vocabulary."""

    def __init__(
        self,
        table: Dict[str, str],
        fallback: str,
        rules: Sequence[Tuple[str, Tuple[str, ...]]] = CATEGORY_RULES,
        fallback_rules: Sequence[Tuple[str, Tuple[str, ...]]] = FALLBACK_RULES,
        unmatched: Optional[str] = "Other",
    ):
        self.table = {key.lower(): value for key, value in table.items()}
        self.fallback = fallback
        self.rules = rules
        self.fallback_rules = fallback_rules
        # None means "pass the provider's raw label through" when nothing matches.
        self.unmatched = unmatched

    def to_provider_vocabulary(self, user_category: str) -> str:
        if not user_category:
            return self.fallback
        return self.table.get(user_category.strip().lower(), self.fallback)

    def categorize(self, type_tags: Iterable[str], raw_label: str = "") -> str:
        tag_tokens = [_tokens(tag) for tag in type_tags if tag]
        for rules in (self.rules, self.fallback_rules):
            for tokens in tag_tokens:
                for category, keywords in rules:
                    if any(keyword in tokens for keyword in keywords):
                        return category
        if self.unmatched is None:
            return raw_label or ""
        return self.unmatched


google_category_mapper = CategoryMapper(GOOGLE_CATEGORY_TYPES, fallback="point_of_interest")
opentripmap_category_mapper = CategoryMapper(
    OPENTRIPMAP_CATEGORY_KINDS, fallback="interesting_places", unmatched=None
)
