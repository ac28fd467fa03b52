"""Request classification by URL shape.

A :class:`Router` holds an ordered list of :class:`PatternRule` objects and
walks it once per request: the first rule whose predicate matches decides
the strategy and namespace kind, and a request that no rule matches is left
alone (pass-through).

:func:`build_default_rules` produces the standard rule set:

=====  ================  ======================================  ========================  ==========
Order  Rule              Matches                                 Strategy                  Namespace
=====  ================  ======================================  ========================  ==========
1      ``range-bypass``  ``Range`` request header                pass-through              --
2      ``app-shell``     build prefix, except the bootstrap file cache-forever             app-shell
3      ``song-archive``  packaged song archive suffix            cache-forever             song
4      ``song-chart``    chart suffix, index or metadata file    fetch-then-cache          song
5      ``skin``          skin prefix                             stale-while-revalidate    skin
6      ``resource``      resource prefix                         stale-while-revalidate    resource
7      ``site``          site origin                             fetch-then-cache          site
8      ``font``          font-hosting origin                     stale-while-revalidate    skin
=====  ================  ======================================  ========================  ==========

Build artifacts and song archives are named by content, so caching them
permanently is safe.  Charts and manifests change under a stable name, so
they go to the network first.  Skins, resources and fonts are large and
slow-changing and tolerate a stale copy.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

import httpx

from swcache.models import NamespaceKind, RouterConfig, StrategyKind

Predicate = Callable[[httpx.Request], bool]


@dataclass(frozen=True)
class PatternRule:
    """One classification rule.

    A rule with ``strategy=None`` and ``namespace_kind=None`` is an explicit
    pass-through: a match stops the walk without intercepting the request.
    Setting only one of the two raises :class:`ValueError`.
    """

    name: str
    predicate: Predicate
    strategy: Optional[StrategyKind]
    namespace_kind: Optional[NamespaceKind]

    def __post_init__(self) -> None:
        if (self.strategy is None) != (self.namespace_kind is None):
            raise ValueError(
                f"Rule {self.name!r} needs both a strategy and a namespace kind, or neither"
            )

    @property
    def intercepts(self) -> bool:
        return self.strategy is not None


@dataclass(frozen=True)
class Route:
    """The outcome of classifying a request that is intercepted."""

    rule: str
    strategy: StrategyKind
    namespace_kind: NamespaceKind


class Router:
    """Ordered first-match dispatcher over :class:`PatternRule` objects.

    Args:
        rules: Rules in evaluation order.
    """

    def __init__(self, rules: Sequence[PatternRule]) -> None:
        self._rules = list(rules)

    @property
    def rules(self) -> list[PatternRule]:
        return list(self._rules)

    def match(self, request: httpx.Request) -> Optional[PatternRule]:
        """Return the first rule matching *request*, or ``None``."""
        for rule in self._rules:
            if rule.predicate(request):
                return rule
        return None

    def classify(self, request: httpx.Request) -> Optional[Route]:
        """Return the route for *request*, or ``None`` for pass-through."""
        rule = self.match(request)
        if rule is None or rule.strategy is None or rule.namespace_kind is None:
            return None
        return Route(rule=rule.name, strategy=rule.strategy, namespace_kind=rule.namespace_kind)


# ------------------------------------------------------------------ #
# Predicates
# ------------------------------------------------------------------ #


def has_range_header(request: httpx.Request) -> bool:
    """True when the request asks for a byte range."""
    return bool(request.headers.get("range"))


def url_startswith(prefix: str, exclude: Sequence[str] = ()) -> Predicate:
    """Predicate matching URLs that start with *prefix* and are not in *exclude*."""
    excluded = frozenset(exclude)

    def predicate(request: httpx.Request) -> bool:
        url = str(request.url)
        return url.startswith(prefix) and url not in excluded

    return predicate


def url_matches(*patterns: str) -> Predicate:
    """Predicate matching URLs where any of *patterns* is found (``re.search``)."""
    compiled = [re.compile(p) for p in patterns]

    def predicate(request: httpx.Request) -> bool:
        url = str(request.url)
        return any(p.search(url) for p in compiled)

    return predicate


def join_origin(origin: str, prefix: str) -> str:
    """Join an origin and an origin-relative prefix with exactly one slash."""
    return origin.rstrip("/") + "/" + prefix.lstrip("/")


def build_default_rules(site_origin: str, config: RouterConfig | None = None) -> list[PatternRule]:
    """Build the standard ordered rule set for *site_origin*.

    Args:
        site_origin: Origin of the intercepted site, e.g. ``https://example.com``.
        config: URL shapes; defaults to :class:`~swcache.models.RouterConfig`.

    Returns:
        Rules in evaluation order.
    """
    config = config or RouterConfig()
    origin = site_origin.rstrip("/")
    build = join_origin(origin, config.build_prefix)
    bootstrap = build + config.bootstrap_file

    return [
        PatternRule("range-bypass", has_range_header, None, None),
        PatternRule(
            "app-shell",
            url_startswith(build, exclude=[bootstrap]),
            StrategyKind.CACHE_FOREVER,
            NamespaceKind.APP_SHELL,
        ),
        PatternRule(
            "song-archive",
            url_matches(config.song_archive_pattern),
            StrategyKind.CACHE_FOREVER,
            NamespaceKind.SONG,
        ),
        PatternRule(
            "song-chart",
            url_matches(config.chart_pattern, config.index_pattern, config.metadata_pattern),
            StrategyKind.FETCH_THEN_CACHE,
            NamespaceKind.SONG,
        ),
        PatternRule(
            "skin",
            url_startswith(join_origin(origin, config.skin_prefix)),
            StrategyKind.STALE_WHILE_REVALIDATE,
            NamespaceKind.SKIN,
        ),
        PatternRule(
            "resource",
            url_startswith(join_origin(origin, config.resource_prefix)),
            StrategyKind.STALE_WHILE_REVALIDATE,
            NamespaceKind.RESOURCE,
        ),
        PatternRule(
            "site",
            url_startswith(origin),
            StrategyKind.FETCH_THEN_CACHE,
            NamespaceKind.SITE,
        ),
        PatternRule(
            "font",
            url_startswith(config.font_origin),
            StrategyKind.STALE_WHILE_REVALIDATE,
            NamespaceKind.SKIN,
        ),
    ]


_LOOPBACK_V4 = re.compile(r"^127(?:\.(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)){3}$")


def is_localhost(url: str) -> bool:
    """True when *url* points at a development host (localhost, ``[::1]``, 127.0.0.0/8)."""
    host = httpx.URL(url).host
    return host in ("localhost", "::1", "[::1]") or bool(_LOOPBACK_V4.match(host))
