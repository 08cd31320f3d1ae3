"""BoardGameGeek XML API 2 gateway."""

import math
import time
from collections.abc import Sequence
from datetime import date

import httpx
import structlog
from bs4 import BeautifulSoup, Tag

from ..models import (
    ANY_PLAYER_COUNT,
    BoardGameFamily,
    ExtendedGameInfo,
    GameInfo,
    NumberOfPlayersVotes,
    PlayRecord,
    Ready,
    RetryLater,
    UserInfo,
    UserValidity,
)
from .errors import handle_error
from .http_client import HttpClientService

log = structlog.stdlib.get_logger()

BGG_BASE_URL = "https://boardgamegeek.com/xmlapi2"
PLAYS_PER_PAGE = 100


class BggGatewayService:
    """Fetches collections, users, game info and plays from BoardGameGeek.

    BGG answers 202 while it prepares a collection and 429 when it throttles
    a client. Both, as well as transport and parse failures, come back as
    ``RetryLater`` so the loader can wait and try again.
    """

    def __init__(
        self,
        http_client: HttpClientService,
        base_url: str = BGG_BASE_URL,
        cache_ttl: float = 300.0,
    ) -> None:
        """Initialize the gateway.

        Args:
            http_client: HTTP client service for making requests
            base_url: Root of the XML API
            cache_ttl: Seconds a fetched collection is reused, 0 to disable
        """
        self.http_client = http_client
        self.base_url = base_url.rstrip("/")
        self.cache_ttl = cache_ttl
        self._collection_cache: dict[str, tuple[float, Ready[GameInfo]]] = {}
        log.info("BGG gateway initialized", base_url=self.base_url, cache_ttl=cache_ttl)

    async def fetch_user_collection(self, username: str) -> Ready[GameInfo] | RetryLater:
        cached = self._collection_cache.get(username)
        if cached is not None and time.monotonic() - cached[0] < self.cache_ttl:
            log.debug("Using cached collection", username=username)
            return cached[1]

        params = {
            "username": username,
            "own": "1",
            "stats": "1",
            "excludesubtype": "boardgameexpansion",
        }
        soup = await self._get_xml("collection", params)
        if isinstance(soup, RetryLater):
            return soup

        try:
            errors = soup.find("errors")
            if errors is not None:
                log.warning("Collection request rejected", username=username, message=errors.get_text(strip=True))
                return Ready([])
            games = [self._parse_collection_item(item, username) for item in soup.find_all("item")]
        except (KeyError, TypeError, ValueError) as e:
            return self._retry_on_error(e, "fetch_user_collection", {"username": username})

        result = Ready(games)
        self._collection_cache[username] = (time.monotonic(), result)
        log.info("Collection fetched", username=username, games=len(games))
        return result

    async def fetch_user_validity(self, username: str) -> UserInfo:
        soup = await self._get_xml("user", {"name": username})
        if isinstance(soup, RetryLater):
            return UserInfo(UserValidity.UNKNOWN, error=soup.error or "BoardGameGeek is not ready")

        user = soup.find("user")
        if user is None:
            return UserInfo(UserValidity.UNKNOWN, error=soup.get_text(strip=True) or "Unexpected response")
        if not user.get("id"):
            return UserInfo(UserValidity.INVALID)
        return UserInfo(UserValidity.VALID, username=str(user.get("name") or username))

    async def fetch_extended_info(self, game_ids: Sequence[int]) -> Ready[ExtendedGameInfo] | RetryLater:
        params = {"id": ",".join(str(game_id) for game_id in game_ids), "stats": "1"}
        soup = await self._get_xml("thing", params)
        if isinstance(soup, RetryLater):
            return soup

        try:
            infos = [self._parse_thing(item) for item in soup.find_all("item")]
        except (KeyError, TypeError, ValueError) as e:
            return self._retry_on_error(e, "fetch_extended_info", {"game_ids": list(game_ids)})

        log.info("Extended info fetched", requested=len(game_ids), received=len(infos))
        return Ready(infos)

    async def fetch_plays(self, username: str) -> Ready[PlayRecord] | RetryLater:
        """Fetch every page of a user's plays; any page not ready fails the whole result."""
        first_page = await self._get_xml("plays", {"username": username})
        if isinstance(first_page, RetryLater):
            return first_page

        try:
            plays = self._parse_plays(first_page)
            plays_tag = first_page.find("plays")
            total = int(plays_tag.get("total") or 0) if plays_tag is not None else 0
            pages = math.ceil(total / PLAYS_PER_PAGE)

            for page in range(2, pages + 1):
                soup = await self._get_xml("plays", {"username": username, "page": str(page)})
                if isinstance(soup, RetryLater):
                    return soup
                plays.extend(self._parse_plays(soup))
        except (KeyError, TypeError, ValueError) as e:
            return self._retry_on_error(e, "fetch_plays", {"username": username})

        log.info("Plays fetched", username=username, plays=len(plays))
        return Ready(plays)

    async def _get_xml(self, endpoint: str, params: dict[str, str]) -> BeautifulSoup | RetryLater:
        url = f"{self.base_url}/{endpoint}"
        try:
            response = await self.http_client.get(url, params=params)
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 429:
                log.warning("Throttled by BoardGameGeek", endpoint=endpoint, params=params)
                return RetryLater(backoff=True, error=handle_error(e, endpoint, "BggGatewayService").message)
            return self._retry_on_error(e, endpoint, {"url": url})
        except httpx.HTTPError as e:
            return self._retry_on_error(e, endpoint, {"url": url})

        if response.status_code == 202:
            log.info("Request accepted, not ready yet", endpoint=endpoint, params=params)
            return RetryLater()

        soup = BeautifulSoup(response.content, "xml")
        message = soup.find("message")
        if message is not None and soup.find(["items", "user", "plays", "errors"]) is None:
            log.info("Request queued by BoardGameGeek", endpoint=endpoint, message=message.get_text(strip=True))
            return RetryLater()
        return soup

    @staticmethod
    def _retry_on_error(error: Exception, operation: str, context: dict[str, object]) -> RetryLater:
        friendly = handle_error(error, operation, "BggGatewayService", context)
        return RetryLater(error=friendly.message)

    @staticmethod
    def _parse_collection_item(item: Tag, username: str) -> GameInfo:
        stats = item.find("stats")
        rating = stats.find("rating") if stats is not None else None
        average = rating.find("average") if rating is not None else None

        user_score = _float_or_none(rating.get("value")) if rating is not None else None
        families = []
        if rating is not None:
            for rank in rating.find_all("rank"):
                value = _float_or_none(rank.get("value"))
                if rank.get("type") == "family" and value is not None:
                    families.append(BoardGameFamily(
                        name=str(rank.get("name", "")),
                        friendly_name=str(rank.get("friendlyname", "")),
                        value=value,
                        bayes_average=_float_or_none(rank.get("bayesaverage")),
                    ))

        return GameInfo(
            id=int(item["objectid"]),
            name=_text(item.find("name")) or "",
            average_rating=(_float_or_none(average.get("value")) if average is not None else None) or 0.0,
            thumbnail_url=_text(item.find("thumbnail")),
            image_url=_text(item.find("image")),
            year_published=_int_or_none(_text(item.find("yearpublished"))),
            min_players=_int_or_none(stats.get("minplayers")) if stats is not None else None,
            max_players=_int_or_none(stats.get("maxplayers")) if stats is not None else None,
            min_playtime=_int_or_none(stats.get("minplaytime")) if stats is not None else None,
            max_playtime=_int_or_none(stats.get("maxplaytime")) if stats is not None else None,
            playing_time=_int_or_none(stats.get("playingtime")) if stats is not None else None,
            families=families,
            user_rating={username: user_score},
        )

    @staticmethod
    def _parse_thing(item: Tag) -> ExtendedGameInfo:
        weight_tag = item.find("averageweight")
        links = item.find_all("link")

        suggestions: dict[str, NumberOfPlayersVotes] = {}
        poll = item.find("poll", attrs={"name": "suggested_numplayers"})
        if poll is not None:
            for results in poll.find_all("results"):
                number_of_players = str(results.get("numplayers", ""))
                votes = {
                    str(result.get("value")): _int_or_none(result.get("numvotes")) or 0
                    for result in results.find_all("result")
                }
                key = ANY_PLAYER_COUNT if number_of_players.endswith("+") else number_of_players
                suggestions[key] = NumberOfPlayersVotes(
                    number_of_players=number_of_players,
                    best=votes.get("Best", 0),
                    recommended=votes.get("Recommended", 0),
                    not_recommended=votes.get("Not Recommended", 0),
                )

        return ExtendedGameInfo(
            game_id=int(item["id"]),
            description=_text(item.find("description")),
            weight=_float_or_none(weight_tag.get("value")) if weight_tag is not None else None,
            mechanics=[str(link.get("value")) for link in links if link.get("type") == "boardgamemechanic"],
            categories=[str(link.get("value")) for link in links if link.get("type") == "boardgamecategory"],
            suggested_number_of_players=suggestions,
        )

    @staticmethod
    def _parse_plays(soup: BeautifulSoup) -> list[PlayRecord]:
        plays = []
        for play in soup.find_all("play"):
            item = play.find("item")
            try:
                played_on = date.fromisoformat(str(play.get("date")))
            except ValueError:
                log.debug("Skipping play without a valid date", play_id=play.get("id"))
                continue
            if item is None:
                continue
            plays.append(PlayRecord(
                play_id=int(play["id"]),
                date=played_on,
                quantity=_int_or_none(play.get("quantity")) or 1,
                game_id=int(item["objectid"]),
                length=_int_or_none(play.get("length")),
            ))
        return plays


def _text(tag: Tag | None) -> str | None:
    if tag is None:
        return None
    text = tag.get_text(strip=True)
    return text or None


def _int_or_none(value: object) -> int | None:
    """Parse a positive integer; BGG reports unknown values as 0 or blank."""
    if value is None:
        return None
    try:
        number = int(str(value))
    except ValueError:
        return None
    return number if number > 0 else None


def _float_or_none(value: object) -> float | None:
    if value is None:
        return None
    try:
        number = float(str(value))
    except ValueError:
        return None
    return None if math.isnan(number) or number == 0 else number
