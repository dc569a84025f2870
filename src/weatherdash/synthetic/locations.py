from __future__ import annotations

from ..domain.models import LocationMatch

MOCK_LOCATIONS: tuple[LocationMatch, ...] = (
    LocationMatch(name="서울", country="KR", state="서울특별시", lat=37.5665, lon=126.9780),
    LocationMatch(name="부산", country="KR", state="부산광역시", lat=35.1796, lon=129.0756),
    LocationMatch(name="대구", country="KR", state="대구광역시", lat=35.8714, lon=128.6014),
    LocationMatch(name="인천", country="KR", state="인천광역시", lat=37.4563, lon=126.7052),
    LocationMatch(name="광주", country="KR", state="광주광역시", lat=35.1595, lon=126.8526),
    LocationMatch(name="대전", country="KR", state="대전광역시", lat=36.3504, lon=127.3845),
    LocationMatch(name="울산", country="KR", state="울산광역시", lat=35.5384, lon=129.3114),
    LocationMatch(name="제주", country="KR", state="제주특별자치도", lat=33.4996, lon=126.5312),
    LocationMatch(name="Tokyo", country="JP", state="Tokyo", lat=35.6762, lon=139.6503),
    LocationMatch(name="New York", country="US", state="New York", lat=40.7128, lon=-74.0060),
    LocationMatch(name="London", country="GB", state="England", lat=51.5074, lon=-0.1278),
    LocationMatch(name="Paris", country="FR", state="Île-de-France", lat=48.8566, lon=2.3522),
)

ENGLISH_ALIASES = {
    "서울": "seoul",
    "부산": "busan",
    "대구": "daegu",
    "인천": "incheon",
    "광주": "gwangju",
    "대전": "daejeon",
    "울산": "ulsan",
    "제주": "jeju",
}


def _matches(location: LocationMatch, query: str) -> bool:
    candidates = [location.name, location.state or "", ENGLISH_ALIASES.get(location.name, "")]
    return any(query in candidate.lower() for candidate in candidates if candidate)


def search_mock_locations(query: str, limit: int = 5) -> list[LocationMatch]:
    normalized = query.strip().lower()
    if not normalized or limit <= 0:
        return []
    matches = [location for location in MOCK_LOCATIONS if _matches(location, normalized)]
    return [location.model_copy() for location in matches[:limit]]
