"""BoardGameGeek client.

Talks to the BGG XML API2 (https://boardgamegeek.com/wiki/page/BGG_XML_API2)
and normalizes its responses into plain dicts and ``GameAttributes``.
"""
import html
import logging
import math
from dataclasses import dataclass
from typing import Tuple
from xml.parsers.expat import ExpatError

import requests
import xmltodict

from errors import CatalogError, GameNotFound

log = logging.getLogger(__name__)

DEFAULT_API_BASE = "https://boardgamegeek.com/xmlapi2"


@dataclass(frozen=True)
class GameAttributes:
    name: str = ""
    description: str = ""
    categories: Tuple[str, ...] = ()
    mechanics: Tuple[str, ...] = ()
    themes: Tuple[str, ...] = ()
    weight: float = 0.0
    year_published: int = 0
    min_players: int = 0
    max_players: int = 0
    playing_time: int = 0

    def to_dict(self):
        return {
            "name": self.name,
            "description": self.description,
            "categories": list(self.categories),
            "mechanics": list(self.mechanics),
            "themes": list(self.themes),
            "weight": self.weight,
            "yearPublished": self.year_published,
            "minPlayers": self.min_players,
            "maxPlayers": self.max_players,
            "playingTime": self.playing_time,
        }


# ---------- XML normalization ----------
def xml_to_dict(text):
    """Parse BGG XML into nested dicts.

    Attributes are merged into their element's dict, a child tag seen once is
    kept as a scalar and a repeated one becomes a list. Element text that sits
    beside attributes lands under ``"_"``.
    """
    try:
        return xmltodict.parse(text, attr_prefix="", cdata_key="_")
    except ExpatError as e:
        raise CatalogError(f"Unparseable BoardGameGeek response: {e}") from e


def as_list(value):
    """BGG returns a lone element unwrapped; make both shapes look the same."""
    if value is None or value == "":
        return []
    return value if isinstance(value, list) else [value]


def _attr(node, key="value"):
    if isinstance(node, dict):
        return node.get(key, "")
    return node or ""


def _to_int(value):
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        try:
            return int(float(value))
        except (TypeError, ValueError, OverflowError):
            return 0


def _to_float(value):
    try:
        f = float(value)
    except (TypeError, ValueError):
        return 0.0
    return f if math.isfinite(f) else 0.0


def _primary_name(item):
    names = as_list(item.get("name"))
    for n in names:
        if isinstance(n, dict) and n.get("type") == "primary":
            return n.get("value", "")
    return _attr(names[0]) if names else ""


def _items(parsed):
    items = parsed.get("items")
    if not isinstance(items, dict):
        return []
    return as_list(items.get("item"))


def extract_game_attributes(item):
    """Normalize one BGG ``thing`` item into ``GameAttributes``.

    Missing or malformed numbers become 0 and missing lists stay empty.
    """
    categories, mechanics, themes = [], [], []
    for link in as_list(item.get("link")):
        if not isinstance(link, dict):
            continue
        link_type = link.get("type")
        value = link.get("value", "")
        if link_type == "boardgamecategory":
            categories.append(value)
        elif link_type == "boardgamemechanic":
            mechanics.append(value)
        # heuristic: BGG has no theme link type, only families named "Theme: ..."
        elif link_type == "boardgamefamily" and "theme" in value.lower():
            themes.append(value)

    weight = 0.0
    stats = item.get("statistics")
    ratings = stats.get("ratings") if isinstance(stats, dict) else None
    if isinstance(ratings, dict):
        weight = _to_float(_attr(ratings.get("averageweight")))

    description = item.get("description") or ""
    if not isinstance(description, str):
        description = ""

    return GameAttributes(
        name=_primary_name(item),
        description=html.unescape(description),
        categories=tuple(categories),
        mechanics=tuple(mechanics),
        themes=tuple(themes),
        weight=weight,
        year_published=_to_int(_attr(item.get("yearpublished"))),
        min_players=_to_int(_attr(item.get("minplayers"))),
        max_players=_to_int(_attr(item.get("maxplayers"))),
        playing_time=_to_int(_attr(item.get("playingtime"))),
    )


def summarize_search_item(item):
    return {
        "id": item.get("id", ""),
        "name": _primary_name(item),
        "yearpublished": _attr(item.get("yearpublished")),
        "thumbnail": item.get("thumbnail") if isinstance(item.get("thumbnail"), str) else "",
    }


class BoardGameGeekClient:
    def __init__(self, base_url=DEFAULT_API_BASE, session=None, timeout=15):
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    def _get(self, endpoint, params):
        url = self.base_url + endpoint
        try:
            r = self.session.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            raise CatalogError(f"GET {url} failed: {e}") from e
        # BGG answers 202 while it is still building a response
        if r.status_code != 200:
            raise CatalogError(f"GET {url} -> {r.status_code}: {r.text[:200]}")
        return xml_to_dict(r.content)

    def search(self, query):
        """Return ``[{id, name, yearpublished, thumbnail}]``; no hits is ``[]``."""
        parsed = self._get("/search", {"query": query, "type": "boardgame"})
        results = [summarize_search_item(it) for it in _items(parsed) if isinstance(it, dict)]
        log.debug("BGG search %r -> %d results", query, len(results))
        return results

    def get_game(self, game_id):
        """Fetch the raw item for a game id, taking the first if several come back."""
        parsed = self._get("/thing", {"id": game_id, "stats": 1})
        items = [it for it in _items(parsed) if isinstance(it, dict)]
        if not items:
            raise GameNotFound()
        return items[0]

    def get_game_attributes(self, game_id):
        return extract_game_attributes(self.get_game(game_id))
