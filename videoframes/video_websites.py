from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Iterable

from . import logger

VIDEO_ID_GROUP = "video_id"
VIDEO_ID_PLACEHOLDER = "%VIDEO_ID%"


@lru_cache(maxsize=64)
def _compile(regex: str, flags: int = 0) -> re.Pattern[str]:
    return re.compile(regex, flags)


@dataclass(frozen=True)
class WebsitePattern:
    """A video host: how its links look and how its player is embedded.

    ``regex`` must define a ``video_id`` named group, ``embed`` is player
    markup where every ``%VIDEO_ID%`` is replaced by the captured id.
    Matching is case-sensitive unless ``flags`` says otherwise.
    """

    id: str
    regex: str
    embed: str
    flags: int = 0

    def compiled(self) -> re.Pattern[str]:
        return _compile(self.regex, self.flags)

    def search(self, text: str, pos: int = 0) -> re.Match[str] | None:
        return self.compiled().search(text, pos)


# Player markup is sized to fit the default player view.
DEFAULT_WEBSITES: tuple[WebsitePattern, ...] = (
    WebsitePattern(
        id="youtube",
        regex=(
            r"(?:https?://)?(?:www\.|m\.)?"
            r"(?:youtube\.com/watch\?(?:[\w=%.-]*&(?:amp;)?)*v=|youtu\.be/)"
            r"(?P<video_id>[\w-]{11})[\w=&%#.;-]*"
        ),
        embed=(
            '<iframe width="425" height="344" '
            'src="https://www.youtube.com/embed/%VIDEO_ID%" '
            'frameborder="0" allowfullscreen></iframe>'
        ),
        flags=re.IGNORECASE,
    ),
    WebsitePattern(
        id="dailymotion",
        regex=r"(?:https?://)?(?:www\.)?dailymotion\.com/video/(?P<video_id>[a-z0-9]+)[\w=&%#.;-]*",
        embed=(
            '<iframe width="425" height="344" '
            'src="https://www.dailymotion.com/embed/video/%VIDEO_ID%" '
            'frameborder="0" allowfullscreen></iframe>'
        ),
        flags=re.IGNORECASE,
    ),
    WebsitePattern(
        id="vimeo",
        regex=r"(?:https?://)?(?:www\.)?vimeo\.com/(?P<video_id>\d+)[\w=&%#.;-]*",
        embed=(
            '<iframe width="425" height="344" '
            'src="https://player.vimeo.com/video/%VIDEO_ID%" '
            'frameborder="0" allowfullscreen></iframe>'
        ),
        flags=re.IGNORECASE,
    ),
)


def _website_from_entry(entry: dict[str, Any]) -> WebsitePattern | None:
    site_id = str(entry.get("id") or "").strip()
    regex = str(entry.get("regex") or "").strip()
    embed = str(entry.get("embed") or "").strip()
    if not site_id or not regex or not embed:
        logger.warn("website skipped: incomplete entry", site_id or "?")
        return None
    flags = re.IGNORECASE if entry.get("ignore_case") is True else 0
    try:
        compiled = _compile(regex, flags)
    except re.error as exc:
        logger.warn("website skipped: bad regex", site_id, str(exc))
        return None
    if VIDEO_ID_GROUP not in compiled.groupindex:
        logger.warn("website skipped: no video_id group", site_id)
        return None
    if VIDEO_ID_PLACEHOLDER not in embed:
        logger.warn("website embed has no placeholder", site_id)
    return WebsitePattern(id=site_id, regex=regex, embed=embed, flags=flags)


def load_websites(cfg: dict[str, Any] | None = None) -> list[WebsitePattern]:
    """Built-in sites plus the ``websites`` entries of the config.

    A configured site with the id of a built-in one replaces it in place.
    """
    sites = list(DEFAULT_WEBSITES)
    extra = (cfg or {}).get("websites") or []
    for entry in extra:
        if not isinstance(entry, dict):
            continue
        site = _website_from_entry(entry)
        if site is None:
            continue
        for idx, known in enumerate(sites):
            if known.id == site.id:
                sites[idx] = site
                break
        else:
            sites.append(site)
    logger.dbg("websites loaded", ",".join(s.id for s in sites))
    return sites


def find_website(
    text: str, websites: Iterable[WebsitePattern] | None = None
) -> WebsitePattern | None:
    for site in websites if websites is not None else DEFAULT_WEBSITES:
        if site.search(text):
            return site
    return None
