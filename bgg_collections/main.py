"""Main entry point for the bgg-collections command line tool.

This module provides:
- Command-line argument parsing
- Application initialization and dependency injection
- The load, enrich, filter and print flow
"""

import argparse
import asyncio
import sys
from pathlib import Path

import structlog

from bgg_collections.models import (
    AppConfig,
    FilterAndSortOptions,
    GameInfo,
    LoadingStatus,
    PlaytimeOption,
    SortKey,
    SortOption,
    SuggestedPlayers,
    UserValidity,
)
from bgg_collections.services.bgg_gateway import BggGatewayService
from bgg_collections.services.collection_loader import CollectionLoaderService
from bgg_collections.services.config import ConfigurationService
from bgg_collections.services.errors import AppError, get_error_service
from bgg_collections.services.filtering import FilterAndSortService
from bgg_collections.services.http_client import HttpClientService
from bgg_collections.services.logging import setup_logging
from bgg_collections.services.storage import CollectionCache, JsonFileStore

log = structlog.stdlib.get_logger()

VERSION = "0.1.0"
SUGGESTED_SORT = "suggested"


class ApplicationContext:
    """Container for application services.

    Services are created lazily so that a run that never reaches the
    network never opens an HTTP client.
    """

    def __init__(self, config_path: Path | None = None, use_cache: bool = True) -> None:
        self._config_path: Path | None = config_path
        self._use_cache: bool = use_cache

        self._config_service: ConfigurationService | None = None
        self._config: AppConfig | None = None
        self._http_client: HttpClientService | None = None
        self._gateway: BggGatewayService | None = None
        self._loader: CollectionLoaderService | None = None
        self._pipeline: FilterAndSortService | None = None

    @property
    def config_service(self) -> ConfigurationService:
        if self._config_service is None:
            self._config_service = ConfigurationService(config_path=self._config_path)
        return self._config_service

    @property
    def config(self) -> AppConfig:
        if self._config is None:
            self._config = self.config_service.load_config()
        return self._config

    @property
    def http_client(self) -> HttpClientService:
        if self._http_client is None:
            self._http_client = HttpClientService(
                timeout=self.config.request_timeout,
                rate_limit_delay=self.config.request_delay,
            )
        return self._http_client

    @property
    def gateway(self) -> BggGatewayService:
        if self._gateway is None:
            self._gateway = BggGatewayService(
                http_client=self.http_client,
                base_url=self.config.base_url,
                cache_ttl=self.config.cache_ttl,
            )
        return self._gateway

    @property
    def loader(self) -> CollectionLoaderService:
        if self._loader is None:
            cache = None
            if self._use_cache and self.config.use_cache and self.config.cache_path is not None:
                cache = CollectionCache(JsonFileStore(self.config.cache_path))
            self._loader = CollectionLoaderService(
                gateway=self.gateway,
                cache=cache,
                retry_delays=self.config_service.retry_delays(self.config),
                concurrent_requests=self.config.concurrent_requests,
                chunk_size=self.config.chunk_size,
            )
        return self._loader

    @property
    def pipeline(self) -> FilterAndSortService:
        if self._pipeline is None:
            self._pipeline = FilterAndSortService()
        return self._pipeline

    async def cleanup(self) -> None:
        if self._http_client is not None:
            await self._http_client.close()


class ParsedArgs:
    """Type-safe container for parsed command-line arguments."""

    def __init__(
        self,
        usernames: list[str],
        sort: list[str],
        players: int | None,
        min_time: int | None,
        max_time: int | None,
        extended: bool,
        plays: bool,
        use_cache: bool,
        limit: int | None,
        config: Path | None,
        log_level: str,
        log_dir: Path | None,
    ) -> None:
        self.usernames = usernames
        self.sort = sort
        self.players = players
        self.min_time = min_time
        self.max_time = max_time
        self.extended = extended
        self.plays = plays
        self.use_cache = use_cache
        self.limit = limit
        self.config = config
        self.log_level = log_level
        self.log_dir = log_dir


def parse_arguments(argv: list[str] | None = None) -> ParsedArgs:
    """Parse command-line arguments."""
    sort_choices = [key.value for key in SortKey] + [SUGGESTED_SORT]
    parser = argparse.ArgumentParser(
        prog="bgg-collections",
        description="Merge, filter and sort the BoardGameGeek collections of several users",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  bgg-collections Warium Cyndaq
  bgg-collections Warium --players 4 --sort suggested --sort bggrating
  bgg-collections Warium --max-time 60 --plays --sort playedNotALot
        """
    )
    _ = parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    _ = parser.add_argument("usernames", nargs="+", help="BoardGameGeek usernames")
    _ = parser.add_argument(
        "--sort",
        action="append",
        choices=sort_choices,
        default=None,
        help="Sort criterion; repeat to combine several (default: bggrating)"
    )
    _ = parser.add_argument("--players", type=int, default=None, help="Only games playable with this many players")
    _ = parser.add_argument("--min-time", type=int, default=None, help="Minimum playtime in minutes")
    _ = parser.add_argument("--max-time", type=int, default=None, help="Maximum playtime in minutes")
    _ = parser.add_argument("--no-extended", action="store_true", help="Skip loading weight, mechanics and player votes")
    _ = parser.add_argument("--plays", action="store_true", help="Also load the users' play history")
    _ = parser.add_argument("--no-cache", action="store_true", help="Do not read or write the local cache")
    _ = parser.add_argument("--limit", type=int, default=None, help="Print at most this many games")
    _ = parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to configuration file (default: ~/.config/bgg-collections/config.json)"
    )
    _ = parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default="WARNING",
        help="Set the logging level (default: WARNING)"
    )
    _ = parser.add_argument("--log-dir", type=Path, default=None, help="Directory for log files")

    ns = parser.parse_args(argv)

    return ParsedArgs(
        usernames=list(ns.usernames),
        sort=list(ns.sort or []),
        players=ns.players,
        min_time=ns.min_time,
        max_time=ns.max_time,
        extended=not ns.no_extended,
        plays=bool(ns.plays),
        use_cache=not ns.no_cache,
        limit=ns.limit,
        config=ns.config,
        log_level=ns.log_level,
        log_dir=ns.log_dir,
    )


def build_options(args: ParsedArgs) -> FilterAndSortOptions:
    """Translate command-line arguments into filter and sort options."""
    sort_options: list[SortOption] = [
        SuggestedPlayers(args.players) if value == SUGGESTED_SORT else SortKey(value)
        for value in args.sort
    ]
    playtime = None
    if args.min_time is not None or args.max_time is not None:
        playtime = PlaytimeOption(minimum=args.min_time, maximum=args.max_time)

    sort_option: SortOption | tuple[SortOption, ...] | None = None
    if len(sort_options) == 1:
        sort_option = sort_options[0]
    elif sort_options:
        sort_option = tuple(sort_options)

    return FilterAndSortOptions(playtime=playtime, player_count=args.players, sort_option=sort_option)


def format_game(game: GameInfo) -> str:
    """One line describing a game for terminal output."""
    year = f" ({game.year_published})" if game.year_published else ""
    players = ""
    if game.min_players is not None and game.max_players is not None:
        players = f"{game.min_players}-{game.max_players}p" if game.min_players != game.max_players else f"{game.min_players}p"
    playtime = ""
    if game.min_playtime is not None:
        playtime = f"{game.min_playtime}-{game.max_playtime}min" if game.max_playtime not in (None, game.min_playtime) else f"{game.min_playtime}min"
    columns = [f"{game.name}{year}", f"{game.average_rating:.2f}", players, playtime]
    if game.weight is not None:
        columns.append(f"weight {game.weight:.2f}")
    if game.play_info is not None:
        columns.append(f"{game.play_count} plays")
    if game.owners:
        columns.append(", ".join(game.owners))
    return "  ".join(column for column in columns if column)


class LoadingReporter:
    """Warns once on stderr when BoardGameGeek starts throttling."""

    def __init__(self) -> None:
        self.warned = False

    def __call__(self, statuses: list[LoadingStatus]) -> None:
        throttled = [status for status in statuses if status.retry_info is not None and status.retry_info.backoff]
        if throttled and not self.warned:
            self.warned = True
            print("BoardGameGeek is throttling requests, still loading...", file=sys.stderr)


async def run(context: ApplicationContext, args: ParsedArgs) -> int:
    """Validate users, load everything requested and print the result.

    Returns:
        Exit code (0 for success, non-zero for errors)
    """
    loader = context.loader
    loader.on_loading_update(LoadingReporter())

    usernames = []
    for username in args.usernames:
        user = await loader.validate_user(username)
        if user.validity == UserValidity.INVALID:
            print(f"Unknown BoardGameGeek user: {username}", file=sys.stderr)
            continue
        if user.validity == UserValidity.UNKNOWN:
            log.warning("Could not validate user, loading anyway", username=username, error=user.error)
        usernames.append(user.username or username)

    if not usernames:
        return 1

    await loader.load_collections(usernames)
    if args.extended:
        await loader.load_extended_info()
    if args.plays:
        await loader.load_plays()

    games = context.pipeline.process(loader.get_all_games_plus(), build_options(args))
    if args.limit is not None:
        games = games[:args.limit]
    for game in games:
        print(format_game(game))
    return 0


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the application."""
    args = parse_arguments(argv)
    setup_logging(log_level=args.log_level, log_dir=args.log_dir)

    log.info("Starting bgg-collections", version=VERSION, usernames=args.usernames)

    context = ApplicationContext(config_path=args.config, use_cache=args.use_cache)

    async def run_and_cleanup() -> int:
        try:
            return await run(context, args)
        finally:
            await context.cleanup()

    try:
        exit_code = asyncio.run(run_and_cleanup())
    except KeyboardInterrupt:
        log.info("Interrupted by user")
        exit_code = 130
    except AppError as e:
        error_service = get_error_service()
        print(error_service.create_user_message(e.to_user_friendly()), file=sys.stderr)
        exit_code = 1

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
