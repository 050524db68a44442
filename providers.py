"""
Lookup providers behind a single gateway interface.

Two backends are available:
- SteamGridDB: curated cover-art index (names, grids)
- IGDB: general game metadata index (cover, release date, summary, screenshots)

The engine only talks to ProviderGateway; which backends run, and in what
order, is decided by the `providers` list in config.yaml.
"""
import threading
import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote

import requests

from activity_log import emit_log
from app_config import enabled_provider_ids, get_int, get_secret, section
from errors import ConfigError, ProviderError
from game_models import (
    Candidate, Cover, DetailResult, ExactMatch, Failure, GameMetadata,
    KnownFields, LookupResult, NotFound, Suggestions,
)
from name_normalizer import names_match

USER_AGENT = "GameCoverEnricher/1.0"

# Errors a backend turns into a Failure instead of raising
_REQUEST_ERRORS = (requests.RequestException, ValueError, KeyError, TypeError, ProviderError)


def format_release_year(timestamp: Optional[Any]) -> Optional[str]:
    """Unix seconds -> calendar year (UTC) as a string."""
    if not timestamp:
        return None
    try:
        return str(datetime.fromtimestamp(int(timestamp), tz=timezone.utc).year)
    except (TypeError, ValueError, OverflowError, OSError):
        return None


class ProviderGateway(ABC):
    """Capability the engine uses to look a game up."""

    provider_id = ""
    display_name = ""

    def __init__(self, callbacks=None):
        self.callbacks = callbacks

    def is_available(self) -> bool:
        """False when the backend is not configured (e.g. no credentials)."""
        return True

    @abstractmethod
    def lookup(self, normalized_name: str, known: KnownFields) -> LookupResult:
        """Search by name. Never raises; transport errors come back as Failure."""

    @abstractmethod
    def fetch_detail(self, candidate_id: int) -> DetailResult:
        """Covers and metadata for a chosen candidate. Raises ProviderError."""

    def search_url(self, name: str) -> str:
        """Public website search for a name, for manual browsing."""
        return ""

    def _log(self, msg: str) -> None:
        emit_log(self.callbacks, f"[DEBUG] {self.display_name}: {msg}")


# ==========================
# SteamGridDB (thread-local session)
# ==========================
_thread_local = threading.local()


def get_session(api_key: str) -> requests.Session:
    sessions = getattr(_thread_local, "sessions", None)
    if sessions is None:
        sessions = {}
        _thread_local.sessions = sessions
    s = sessions.get(api_key)
    if s is None:
        s = requests.Session()
        s.headers.update({
            "Authorization": f"Bearer {api_key}",
            "Accept": "application/json",
            "User-Agent": USER_AGENT,
        })
        sessions[api_key] = s
    return s


def sgdb_get(api_key: str, base_url: str, path: str, params: Optional[dict], timeout_s: int) -> dict:
    url = f"{base_url.rstrip('/')}/{path.lstrip('/')}"
    s = get_session(api_key)
    r = s.get(url, params=params, timeout=timeout_s)
    r.raise_for_status()
    data = r.json()
    if not data.get("success", False):
        raise ProviderError("steamgriddb", f"unsuccessful response for {path}: {data.get('errors', data)}")
    return data


def search_autocomplete(api_key: str, base_url: str, term: str, timeout_s: int) -> List[dict]:
    term_q = quote(term, safe="")
    data = sgdb_get(api_key, base_url, f"search/autocomplete/{term_q}", None, timeout_s)
    return data.get("data", []) or []


def get_game_by_id(api_key: str, base_url: str, game_id: int, timeout_s: int) -> dict:
    data = sgdb_get(api_key, base_url, f"games/id/{game_id}", None, timeout_s)
    return data.get("data", {}) or {}


def grids_by_game(api_key: str, base_url: str, game_id: int, timeout_s: int) -> List[dict]:
    data = sgdb_get(api_key, base_url, f"grids/game/{game_id}", None, timeout_s)
    return data.get("data", []) or []


def rank_grids(grids: List[dict], target_dim: str, limit: int) -> List[Cover]:
    """
    Order grids for display: the target dimension always wins, then score
    descending. Grids without both a full and a thumbnail URL are dropped.
    """
    usable = [g for g in grids if (g.get("url") or "").strip() and (g.get("thumb") or "").strip()]

    def _key(g: dict) -> Tuple[int, float]:
        exact_dim = f"{g.get('width')}x{g.get('height')}" == target_dim
        return (1 if exact_dim else 0, float(g.get("score") or 0))

    usable.sort(key=_key, reverse=True)
    return [_cover_from_grid(g) for g in usable[:limit]]


def _cover_from_grid(g: dict) -> Cover:
    return Cover(
        id=int(g.get("id") or 0),
        full_url=g["url"].strip(),
        thumb_url=g["thumb"].strip(),
        width=int(g.get("width") or 0),
        height=int(g.get("height") or 0),
        score=float(g.get("score") or 0),
        tags=tuple(g.get("tags") or ()),
        style=str(g.get("style") or ""),
    )


class SteamGridDBProvider(ProviderGateway):
    provider_id = "steamgriddb"
    display_name = "SteamGridDB"

    def __init__(self, api_key: str, base_url: str = "https://www.steamgriddb.com/api/v2",
                 timeout_s: int = 30, target_dimensions: str = "600x900",
                 max_suggestions: int = 5, max_covers: int = 50, callbacks=None):
        super().__init__(callbacks)
        self.api_key = api_key
        self.base_url = base_url
        self.timeout_s = timeout_s
        self.target_dimensions = target_dimensions
        self.max_suggestions = max_suggestions
        self.max_covers = max_covers

    @classmethod
    def from_config(cls, cfg: Dict[str, Any], callbacks=None) -> "SteamGridDBProvider":
        sg = section(cfg, "steamgriddb")
        return cls(
            api_key=get_secret(sg, "api_key_env", "SGDB_API_KEY"),
            base_url=sg.get("base_url", "https://www.steamgriddb.com/api/v2"),
            timeout_s=get_int(sg, "request_timeout_seconds", 30),
            target_dimensions=str(sg.get("target_dimensions", "600x900")),
            max_suggestions=get_int(sg, "max_suggestions", 5),
            max_covers=get_int(sg, "max_covers", 50),
            callbacks=callbacks,
        )

    def is_available(self) -> bool:
        return bool(self.api_key)

    def lookup(self, normalized_name: str, known: KnownFields) -> LookupResult:
        try:
            games = search_autocomplete(self.api_key, self.base_url, normalized_name, self.timeout_s)
        except _REQUEST_ERRORS as e:
            self._log(f"Search failed for '{normalized_name}' - {type(e).__name__}: {e}")
            return Failure(f"SteamGridDB search failed: {e}")

        self._log(f"Found {len(games)} results for '{normalized_name}'")
        exact = next((g for g in games if names_match(g.get("name", ""), normalized_name)), None)

        if exact is not None:
            self._log(f"Exact match: '{exact.get('name')}' (ID: {exact.get('id')})")
            metadata = GameMetadata(name=exact.get("name"))
            if known.has_image:
                return ExactMatch(cover=None, metadata=metadata)
            try:
                covers = rank_grids(
                    grids_by_game(self.api_key, self.base_url, exact["id"], self.timeout_s),
                    self.target_dimensions, self.max_covers,
                )
            except _REQUEST_ERRORS as e:
                self._log(f"Grid fetch failed - {type(e).__name__}: {e}")
                return Failure(f"SteamGridDB grid fetch failed: {e}")
            if covers:
                return ExactMatch(cover=covers[0], metadata=metadata)
            if len(games) == 1:
                self._log(f"No grids for '{exact.get('name')}'")
                return NotFound()
            self._log(f"No grids for '{exact.get('name')}', offering suggestions")

        if not games:
            return NotFound()

        candidates = tuple(
            Candidate(
                id=int(g.get("id") or 0),
                display_name=str(g.get("name") or ""),
                year=format_release_year(g.get("release_date")),
                logo_url=g.get("logo") or None,
            )
            for g in games[:self.max_suggestions]
        )
        return Suggestions(candidates=candidates, provider_id=self.provider_id)

    def fetch_detail(self, candidate_id: int) -> DetailResult:
        try:
            game = get_game_by_id(self.api_key, self.base_url, candidate_id, self.timeout_s)
            covers = rank_grids(
                grids_by_game(self.api_key, self.base_url, candidate_id, self.timeout_s),
                self.target_dimensions, self.max_covers,
            )
        except ProviderError:
            raise
        except (requests.RequestException, ValueError) as e:
            raise ProviderError(self.provider_id, f"detail fetch for {candidate_id} failed: {e}") from e

        self._log(f"{len(covers)} covers for game ID {candidate_id}")
        return DetailResult(covers=tuple(covers), metadata=GameMetadata(name=game.get("name") or None))

    def search_url(self, name: str) -> str:
        return f"https://www.steamgriddb.com/search/grids?term={quote(name, safe='')}"


# ==========================
# IGDB Provider
# ==========================
# IGDB image URL format: https://images.igdb.com/igdb/image/upload/t_{size}/{image_id}.jpg
IGDB_IMAGE_SIZES = {
    "cover_small": (90, 128),
    "cover_big": (264, 374),
    "screenshot_med": (569, 320),
    "screenshot_big": (889, 500),
    "720p": (1280, 720),
    "1080p": (1920, 1080),
}

OFFICIAL_COVER_SCORE = 100
SCREENSHOT_BASE_SCORE = 90


def format_igdb_image_url(url: str, size: str) -> str:
    """Turn the thumbnail URL IGDB returns into a full-size https URL."""
    if not url:
        return ""
    if url.startswith("//"):
        url = "https:" + url
    return url.replace("t_thumb", f"t_{size}")


def _igdb_description(game: dict) -> Optional[str]:
    return (game.get("summary") or game.get("storyline") or "").strip() or None


class IGDBProvider(ProviderGateway):
    provider_id = "igdb"
    display_name = "IGDB"

    def __init__(self, client_id: str, client_secret: str, base_url: str = "https://api.igdb.com/v4",
                 token_url: str = "https://id.twitch.tv/oauth2/token", timeout_s: int = 30,
                 cover_size: str = "cover_big", search_limit: int = 10,
                 max_suggestions: int = 5, max_screenshots: int = 10, callbacks=None):
        super().__init__(callbacks)
        self.client_id = client_id
        self.client_secret = client_secret
        self.base_url = base_url
        self.token_url = token_url
        self.timeout_s = timeout_s
        self.cover_size = cover_size
        self.search_limit = search_limit
        self.max_suggestions = max_suggestions
        self.max_screenshots = max_screenshots
        self._token_cache = {"token": None, "expires_at": 0.0}

    @classmethod
    def from_config(cls, cfg: Dict[str, Any], callbacks=None) -> "IGDBProvider":
        ig = section(cfg, "igdb")
        return cls(
            client_id=get_secret(ig, "client_id_env", "IGDB_CLIENT_ID"),
            client_secret=get_secret(ig, "client_secret_env", "IGDB_CLIENT_SECRET"),
            base_url=ig.get("base_url", "https://api.igdb.com/v4"),
            token_url=ig.get("token_url", "https://id.twitch.tv/oauth2/token"),
            timeout_s=get_int(ig, "request_timeout_seconds", 30),
            cover_size=str(ig.get("cover_size", "cover_big")),
            search_limit=get_int(ig, "search_limit", 10),
            max_suggestions=get_int(ig, "max_suggestions", 5),
            max_screenshots=get_int(ig, "max_screenshots", 10),
            callbacks=callbacks,
        )

    def is_available(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def get_access_token(self) -> str:
        """Twitch client-credentials token, cached until 5 minutes before expiry."""
        if self._token_cache["token"] and time.time() < self._token_cache["expires_at"]:
            return self._token_cache["token"]

        params = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "grant_type": "client_credentials",
        }
        try:
            r = requests.post(self.token_url, params=params, timeout=self.timeout_s)
            r.raise_for_status()
            data = r.json()
        except (requests.RequestException, ValueError) as e:
            raise ProviderError(self.provider_id, f"token request failed: {e}") from e

        token = data.get("access_token")
        if not token:
            raise ProviderError(self.provider_id, "token response has no access_token")
        expires_in = int(data.get("expires_in", 3600))

        self._token_cache["token"] = token
        self._token_cache["expires_at"] = time.time() + expires_in - 300
        return token

    def query_games(self, body: str) -> List[dict]:
        """POST an Apicalypse query to the games endpoint."""
        token = self.get_access_token()
        headers = {
            "Client-ID": self.client_id,
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
            "Content-Type": "text/plain",
        }
        r = requests.post(f"{self.base_url.rstrip('/')}/games", headers=headers, data=body, timeout=self.timeout_s)
        r.raise_for_status()
        games = r.json()
        if not isinstance(games, list):
            raise ProviderError(self.provider_id, f"unexpected response: {games!r}")
        return games

    def _cover_for(self, game: dict) -> Optional[Cover]:
        url = format_igdb_image_url((game.get("cover") or {}).get("url", ""), self.cover_size)
        if not url:
            return None
        width, height = IGDB_IMAGE_SIZES.get(self.cover_size, (600, 900))
        return Cover(
            id=int((game.get("cover") or {}).get("id") or game.get("id") or 0),
            full_url=url, thumb_url=url, width=width, height=height,
            score=OFFICIAL_COVER_SCORE, tags=("igdb",), style="official",
        )

    def lookup(self, normalized_name: str, known: KnownFields) -> LookupResult:
        term = normalized_name.replace('"', '\\"')
        body = (f'search "{term}"; fields name,cover.url,first_release_date,summary,storyline; '
                f'limit {self.search_limit};')
        try:
            games = self.query_games(body)
        except _REQUEST_ERRORS as e:
            self._log(f"Search failed for '{normalized_name}' - {type(e).__name__}: {e}")
            return Failure(f"IGDB search failed: {e}")

        self._log(f"Found {len(games)} games for '{normalized_name}'")
        exact = next((g for g in games if names_match(g.get("name", ""), normalized_name)), None)

        if exact is not None:
            cover = None if known.has_image else self._cover_for(exact)
            if known.has_image or cover is not None:
                self._log(f"Exact match: '{exact.get('name')}'")
                year = format_release_year(exact.get("first_release_date"))
                description = _igdb_description(exact)
                # Only fields the item is missing; name always, for the display-name override
                metadata = GameMetadata(
                    name=exact.get("name"),
                    year=year if not known.has_year else None,
                    description=description if not known.has_description else None,
                )
                return ExactMatch(cover=cover, metadata=metadata)
            # The exact game stays among the suggestions so its metadata can still be picked
            self._log(f"Exact match '{exact.get('name')}' has no cover, offering suggestions")

        if not games:
            return NotFound()

        candidates = tuple(
            Candidate(
                id=int(g.get("id") or 0),
                display_name=str(g.get("name") or ""),
                year=format_release_year(g.get("first_release_date")),
                description=_igdb_description(g),
                logo_url=format_igdb_image_url((g.get("cover") or {}).get("url", ""), self.cover_size) or None,
            )
            for g in games[:self.max_suggestions]
        )
        return Suggestions(candidates=candidates, provider_id=self.provider_id)

    def fetch_detail(self, candidate_id: int) -> DetailResult:
        body = (f"fields name,cover.url,first_release_date,summary,storyline,screenshots.url; "
                f"where id = {int(candidate_id)};")
        try:
            games = self.query_games(body)
        except ProviderError:
            raise
        except (requests.RequestException, ValueError) as e:
            raise ProviderError(self.provider_id, f"detail fetch for {candidate_id} failed: {e}") from e
        if not games:
            raise ProviderError(self.provider_id, f"game {candidate_id} not found")

        game = games[0]
        covers: List[Cover] = []
        official = self._cover_for(game)
        if official is not None:
            covers.append(official)

        # Screenshots as alternative covers, ranked below the official one
        shot_w, shot_h = IGDB_IMAGE_SIZES["screenshot_big"]
        for index, shot in enumerate((game.get("screenshots") or [])[:self.max_screenshots]):
            url = format_igdb_image_url(shot.get("url", ""), "screenshot_big")
            if not url:
                continue
            covers.append(Cover(
                id=int(shot.get("id") or 0), full_url=url, thumb_url=url,
                width=shot_w, height=shot_h, score=SCREENSHOT_BASE_SCORE - index,
                tags=("igdb", "screenshot"), style="screenshot",
            ))

        metadata = GameMetadata(
            name=game.get("name"),
            year=format_release_year(game.get("first_release_date")),
            description=_igdb_description(game),
        )
        self._log(f"{len(covers)} covers for game ID {candidate_id}")
        return DetailResult(covers=tuple(covers), metadata=metadata)

    def search_url(self, name: str) -> str:
        return f"https://www.igdb.com/search?type=1&q={quote(name, safe='')}"


# ==========================
# Provider order from config
# ==========================
PROVIDER_FACTORIES = {
    SteamGridDBProvider.provider_id: SteamGridDBProvider.from_config,
    IGDBProvider.provider_id: IGDBProvider.from_config,
}


def build_providers(cfg: Dict[str, Any], callbacks=None) -> List[ProviderGateway]:
    """Instantiate enabled providers in the configured order."""
    providers = []
    for prov_id in enabled_provider_ids(cfg):
        factory = PROVIDER_FACTORIES.get(prov_id)
        if factory is None:
            raise ConfigError(f"Unknown provider id '{prov_id}' (known: {', '.join(PROVIDER_FACTORIES)})")
        providers.append(factory(cfg, callbacks))
    return providers
