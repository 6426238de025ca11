"""Static lookup tables used by the direction heuristics and highway matching.

Kept as plain data so they can be reviewed and extended without touching the
resolution logic. ``validate_tables`` runs when the app starts.
"""

from __future__ import annotations

from django.core.exceptions import ImproperlyConfigured

from rest_areas.services.geo import is_within_korea
from rest_areas.services.types import Direction

# Checked in this order; the first group with a matching keyword wins.
DIRECTION_KEYWORDS: tuple[tuple[Direction, tuple[str, ...]], ...] = (
    (Direction.BOTH, ("양방향", "상하행", "통합")),
    (Direction.UP, ("상행", "북", "서울")),
    (Direction.DOWN, ("하행", "남", "부산")),
)

# Only matched against the whole label, "양양방향" must not read as BOTH.
WEAK_BOTH_KEYWORDS: tuple[str, ...] = ("양",)

DESTINATION_CITIES: dict[str, tuple[float, float]] = {
    "서울": (37.5665, 126.9780),
    "부산": (35.1796, 129.0756),
    "대구": (35.8714, 128.6014),
    "대전": (36.3504, 127.3845),
    "광주": (35.1595, 126.8526),
    "울산": (35.5384, 129.3114),
    "인천": (37.4563, 126.7052),
    "수원": (37.2636, 127.0286),
    "천안": (36.8151, 127.1139),
    "청주": (36.6424, 127.4890),
    "세종": (36.4800, 127.2890),
    "강릉": (37.7519, 128.8761),
    "원주": (37.3422, 127.9202),
    "춘천": (37.8813, 127.7298),
    "양양": (38.0754, 128.6190),
    "속초": (38.2070, 128.5918),
    "동해": (37.5247, 129.1143),
    "삼척": (37.4499, 129.1652),
    "홍천": (37.6970, 127.8886),
    "인제": (38.0697, 128.1707),
    "목포": (34.8118, 126.3922),
    "무안": (34.9904, 126.4817),
    "전주": (35.8242, 127.1480),
    "익산": (35.9483, 126.9577),
    "군산": (35.9676, 126.7366),
    "남원": (35.4164, 127.3905),
    "순천": (34.9507, 127.4872),
    "여수": (34.7604, 127.6622),
    "광양": (34.9407, 127.6959),
    "창원": (35.2280, 128.6811),
    "마산": (35.2141, 128.5732),
    "진주": (35.1800, 128.1076),
    "통영": (34.8544, 128.4331),
    "김해": (35.2285, 128.8894),
    "양산": (35.3350, 129.0373),
    "포항": (36.0190, 129.3435),
    "경주": (35.8562, 129.2247),
    "영천": (35.9733, 128.9386),
    "영덕": (36.4153, 129.3651),
    "안동": (36.5684, 128.7294),
    "상주": (36.4109, 128.1590),
    "김천": (36.1398, 128.1136),
    "구미": (36.1195, 128.3446),
    "당진": (36.8898, 126.6459),
    "서산": (36.7848, 126.4503),
    "공주": (36.4465, 127.1190),
    "논산": (36.1872, 127.0987),
    "평택": (36.9921, 127.1129),
    "성남": (37.4200, 127.1265),
    "하남": (37.5393, 127.2148),
    "구리": (37.5943, 127.1296),
    "의정부": (37.7381, 127.0338),
    "고양": (37.6584, 126.8320),
    "파주": (37.7599, 126.7800),
    "이천": (37.2720, 127.4350),
    "여주": (37.2983, 127.6371),
    "양평": (37.4917, 127.4875),
    "제천": (37.1326, 128.1910),
    "충주": (36.9910, 127.9259),
}

# Dominant travel axis of each highway, keyed by base name (suffix stripped).
HIGHWAY_FAMILIES: dict[str, str] = {
    "경부": "NS",
    "중부": "NS",
    "제2중부": "NS",
    "중부내륙": "NS",
    "중앙": "NS",
    "서해안": "NS",
    "호남": "NS",
    "천안논산": "NS",
    "통영대전": "NS",
    "순천완주": "NS",
    "상주영천": "NS",
    "동해": "NS",
    "영동": "EW",
    "남해": "EW",
    "광주대구": "EW",
    "서울양양": "EW",
    "당진영덕": "EW",
    "새만금포항": "EW",
    "평택제천": "EW",
    "대구포항": "EW",
    "무안광주": "EW",
}

HIGHWAY_ALIASES: dict[str, tuple[str, ...]] = {
    "서울외곽순환": ("수도권제1순환",),
    "수도권제1순환": ("서울외곽순환",),
    "대구부산": ("중앙지선",),
    "중앙지선": ("대구부산",),
}


def validate_tables() -> None:
    seen: dict[str, Direction] = {}
    for direction, keywords in DIRECTION_KEYWORDS:
        if not keywords:
            raise ImproperlyConfigured(f"Direction {direction.value} has no keywords")
        for keyword in keywords:
            if keyword in seen and seen[keyword] != direction:
                raise ImproperlyConfigured(f"Direction keyword {keyword!r} is ambiguous")
            seen[keyword] = direction

    for city, (lat, lng) in DESTINATION_CITIES.items():
        if not is_within_korea(lat, lng):
            raise ImproperlyConfigured(f"Destination city {city!r} has coordinates outside Korea")

    for highway, axis in HIGHWAY_FAMILIES.items():
        if axis not in {"NS", "EW"}:
            raise ImproperlyConfigured(f"Highway {highway!r} has unknown axis {axis!r}")

    for base, aliases in HIGHWAY_ALIASES.items():
        if base in aliases:
            raise ImproperlyConfigured(f"Highway alias {base!r} refers to itself")
