"""In-memory search index over catalog items"""

import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from rapidfuzz.distance import Levenshtein

# Item query boosts
BOOST_NAME_EXACT = 50.0
BOOST_NAME_PHRASE = 12.0
BOOST_NAME_PREFIX = 6.0
BOOST_NAME_TOKEN_PREFIX = 5.0
BOOST_NAME_FIELD = 3.0
BOOST_OTHER_FIELDS = 1.0

# Similar query boosts
BOOST_SIMILAR_GENRES = 2.0
BOOST_SIMILAR_PEOPLE = 2.0
BOOST_SIMILAR_OVERVIEW = 0.5
SIMILAR_MIN_SHOULD = 2
SIMILAR_SIZE = 15

# Person query boosts
BOOST_PERSON_PHRASE = 20.0
BOOST_PERSON_MATCH = 10.0
BOOST_PERSON_PREFIX = 8.0
BOOST_PERSON_FUZZY = 3.0

STOP_WORDS = frozenset(
    "a an and are as at be but by for if in into is it no not of on or "
    "such that the their then there these they this to was will with".split()
)

_token_re = re.compile(r"[a-z0-9]+")


def analyze(text: str) -> List[str]:
    """English-ish analyzer: lowercase, split, drop stop words, strip plural s"""
    tokens = []
    for tok in _token_re.findall(text.lower()):
        if tok in STOP_WORDS:
            continue
        if len(tok) > 3 and tok.endswith("s") and not tok.endswith("ss"):
            tok = tok[:-1]
        tokens.append(tok)
    return tokens


def fuzziness(token: str) -> int:
    return 2 if len(token) >= 6 else 1


def _fuzzy_in(token: str, tokens: Iterable[str]) -> bool:
    limit = fuzziness(token)
    for t in tokens:
        if Levenshtein.distance(token, t, score_cutoff=limit) <= limit:
            return True
    return False


def _prefix_in(token: str, tokens: Iterable[str]) -> bool:
    return any(t.startswith(token) for t in tokens)


def _phrase_in(phrase: List[str], tokens: List[str]) -> bool:
    if not phrase or len(phrase) > len(tokens):
        return False
    n = len(phrase)
    return any(tokens[i:i + n] == phrase for i in range(len(tokens) - n + 1))


@dataclass
class SearchDocument:
    id: str
    parent_id: str
    name: str
    sort_name: str = ""
    overview: str = ""
    genres: List[str] = field(default_factory=list)
    people: List[str] = field(default_factory=list)
    year: int = 0

    def __post_init__(self):
        self.name_exact = self.name.lower().strip()
        self.name_tokens = analyze(self.name)
        self.sort_name_tokens = analyze(self.sort_name)
        self.overview_tokens = set(analyze(self.overview))
        self.genre_terms = {g.lower() for g in self.genres}
        self.people_terms = {p.lower() for p in self.people}


class SearchIndex:
    """Scored boolean-should queries over a fixed set of documents"""

    def __init__(self, documents: Optional[Iterable[SearchDocument]] = None):
        self.documents: Dict[str, SearchDocument] = {}
        self.people: Dict[str, str] = {}
        for doc in documents or []:
            self.add(doc)

    def add(self, doc: SearchDocument):
        self.documents[doc.id] = doc
        for person in doc.people:
            self.people.setdefault(person.lower(), person)

    def __len__(self) -> int:
        return len(self.documents)

    def _score_item(self, doc: SearchDocument, term: str, tokens: List[str]) -> float:
        score = 0.0
        if doc.name_exact == term:
            score += BOOST_NAME_EXACT
        if _phrase_in(analyze(term), doc.name_tokens):
            score += BOOST_NAME_PHRASE
        if doc.name_exact.startswith(term):
            score += BOOST_NAME_PREFIX
        if tokens and _prefix_in(tokens[0], doc.name_tokens):
            score += BOOST_NAME_TOKEN_PREFIX

        for tok in tokens:
            for field_tokens, boost in (
                (doc.name_tokens, BOOST_NAME_FIELD),
                (doc.sort_name_tokens, BOOST_OTHER_FIELDS),
                (doc.overview_tokens, BOOST_OTHER_FIELDS),
            ):
                if _fuzzy_in(tok, field_tokens):
                    score += boost
                if _prefix_in(tok, field_tokens):
                    score += boost
        return score

    def search_item(self, search_term: str, size: int = 50) -> List[str]:
        """Item ids matching a free text query, best first"""
        term = search_term.lower().strip()
        if not term:
            return []
        tokens = analyze(term)

        scored = []
        for doc in self.documents.values():
            score = self._score_item(doc, term, tokens)
            if score > 0:
                scored.append((-score, doc.name_exact, doc.id))
        scored.sort()
        return [doc_id for _, _, doc_id in scored[:size]]

    def similar(self, doc_id: str, size: int = SIMILAR_SIZE) -> List[str]:
        """Ids of items in the same parent that resemble doc_id"""
        source = self.documents.get(doc_id)
        if source is None:
            return []

        scored = []
        for doc in self.documents.values():
            if doc.id == source.id or doc.parent_id != source.parent_id:
                continue

            matched = 0
            score = 0.0
            if source.name_tokens and _prefix_in(source.name_tokens[0], doc.name_tokens):
                matched += 1
                score += BOOST_NAME_TOKEN_PREFIX
            for tok in source.name_tokens:
                if _fuzzy_in(tok, doc.name_tokens):
                    matched += 1
                    score += BOOST_NAME_FIELD
                if _fuzzy_in(tok, doc.sort_name_tokens):
                    matched += 1
                    score += BOOST_OTHER_FIELDS
            shared_genres = source.genre_terms & doc.genre_terms
            if shared_genres:
                matched += len(shared_genres)
                score += BOOST_SIMILAR_GENRES * len(shared_genres)
            shared_people = source.people_terms & doc.people_terms
            if shared_people:
                matched += len(shared_people)
                score += BOOST_SIMILAR_PEOPLE * len(shared_people)
            shared_words = source.overview_tokens & doc.overview_tokens
            if shared_words:
                matched += 1
                score += BOOST_SIMILAR_OVERVIEW * len(shared_words)

            if matched >= SIMILAR_MIN_SHOULD:
                scored.append((-score, doc.name_exact, doc.id))
        scored.sort()
        return [d for _, _, d in scored[:size]]

    def search_person(self, name: str, size: int = 50) -> List[str]:
        """Person names matching a query, best first"""
        term = name.lower().strip()
        if not term:
            return []
        tokens = [t for t in term.split() if len(t) >= 2]

        scored = []
        for key, person in self.people.items():
            person_tokens = key.split()
            score = 0.0
            if term in key:
                score += BOOST_PERSON_PHRASE
            if all(t in person_tokens for t in term.split()):
                score += BOOST_PERSON_MATCH
            if key.startswith(term):
                score += BOOST_PERSON_PREFIX
            for tok in tokens:
                if _fuzzy_in(tok, person_tokens):
                    score += BOOST_PERSON_FUZZY
                if _prefix_in(tok, person_tokens):
                    score += BOOST_PERSON_PREFIX
            if score > 0:
                scored.append((-score, key, person))
        scored.sort()
        return [person for _, _, person in scored[:size]]
