"""Genre vocabulary normalization"""

from typing import Iterable, List

GENRE_MAP = {
    "absurdist": "Absurdist",
    "action": "Action",
    "adventure": "Adventure",
    "animation": "Animation",
    "biography": "Biography",
    "children": "Children",
    "comedy": "Comedy",
    "crime": "Crime",
    "disaster": "Disaster",
    "documentary": "Documentary",
    "drama": "Drama",
    "erotic": "Erotic",
    "family": "Family",
    "fantasy": "Fantasy",
    "film noir": "Film Noir",
    "film-noir": "Film Noir",
    "foreign": "Foreign",
    "game show": "Game Show",
    "game-show": "Game Show",
    "historical": "Historical",
    "history": "History",
    "holiday": "Holiday",
    "horror": "Horror",
    "indie": "Indie",
    "mini series": "Mini Series",
    "mini-series": "Mini Series",
    "music": "Music",
    "musical": "Musical",
    "mystery": "Mystery",
    "news": "News",
    "philosophical": "Philosophical",
    "political": "Political",
    "reality": "Reality",
    "romance": "Romance",
    "satire": "Satire",
    "sci fi": "Sci-Fi",
    "sci-fi": "Sci-Fi",
    "science fiction": "Sci-Fi",
    "science-fiction": "Sci-Fi",
    "short": "Short",
    "soap": "Soap",
    "sport": "Sports",
    "sports": "Sports",
    "sports film": "Sports",
    "sports-film": "Sports",
    "surreal": "Surreal",
    "suspense": "Suspense",
    "tv movie": "TV Movie",
    "tv-movie": "TV Movie",
    "talk show": "Talk Show",
    "talk-show": "Talk Show",
    "telenovela": "Telenovela",
    "thriller": "Thriller",
    "urban": "Urban",
    "war": "War",
    "western": "Western",
}


def normalize_genre(genre: str) -> str:
    """Map a genre onto the fixed vocabulary, unknown ones pass through"""
    genre = genre.strip()
    return GENRE_MAP.get(genre.lower(), genre)


def split_genres(genres: Iterable[str]) -> List[str]:
    """Split "a / b" and "a, b" style genre strings into separate entries"""
    genres = list(genres)
    if not any("," in g or "/" in g for g in genres):
        return [g.strip() for g in genres]
    out = []
    for g in genres:
        parts = g.split("/")
        if len(parts) == 1:
            parts = g.split(",")
        out.extend(p.strip() for p in parts)
    return out


def normalize_genres(genres: Iterable[str]) -> List[str]:
    """Split, normalize and dedup, keeping order and names longer than one char"""
    result: List[str] = []
    for g in split_genres(genres):
        name = normalize_genre(g)
        if len(name) > 1 and name not in result:
            result.append(name)
    return result
