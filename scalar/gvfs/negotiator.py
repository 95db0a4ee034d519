"""
Negotiation of the GVFS protocol and its cache servers.

A remote speaking the GVFS protocol publishes a ``gvfs/config`` document
listing its cache servers::

    {"CacheServers": [{"Url": "https://cache.example/0", "GlobalDefault": false},
                      {"Url": "https://cache.example/1", "GlobalDefault": true}]}

The document is fetched through ``git gvfs-helper``, which needs to run inside
a git repository, and is scanned with the forward-only JSON iterator. The
default cache server is the one at the first index whose ``GlobalDefault`` is
true; later entries are never looked at.
"""

import hashlib
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from scalar.config import allow_gvfs_via_http, skip_vsts_info
from scalar.exceptions import ProtocolError
from scalar.git.context import GitContext
from scalar.gvfs.json_iter import JsonToken, JsonType, first_match, iterate_json

logger = logging.getLogger(__name__)

_CACHE_SERVER_FIELD = re.compile(
    r"^\.CacheServers\[([0-9]+)\]\.(Url|GlobalDefault)$", re.IGNORECASE
)


@dataclass
class CacheServerEntry:
    index: int
    url: Optional[str] = None
    is_global_default: bool = False


class ProbeMode(Enum):
    NONE = "none"
    LIST_ONLY = "list-only"
    WITH_DEFAULT = "with-default"


@dataclass
class ProbeResult:
    """
    Outcome of probing a remote.

    NONE means the protocol cannot be used; LIST_ONLY carries every
    advertised server; WITH_DEFAULT carries the default server, which may be
    None when no server is marked as the global default.
    """

    mode: ProbeMode
    default_url: Optional[str] = None
    servers: List[CacheServerEntry] = field(default_factory=list)

    @property
    def supported(self) -> bool:
        return self.mode is not ProbeMode.NONE


def cache_server_field(token: JsonToken):
    """Split a `.CacheServers[N].<Field>` key into (N, lowercased field), or None."""
    match = _CACHE_SERVER_FIELD.match(token.key)
    if not match:
        return None
    return int(match.group(1)), match.group(2).lower()


def is_default_marker(token: JsonToken) -> bool:
    if token.type is not JsonType.TRUE:
        return False
    parsed = cache_server_field(token)
    return parsed is not None and parsed[1] == "globaldefault"


def url_key(index: int) -> str:
    return f".CacheServers[{index}].Url"


class CacheServerNegotiator:
    """Probe a remote URL for GVFS protocol support."""

    def __init__(self, context: GitContext):
        self.context = context

    def can_use_protocol(self, url: str) -> bool:
        """Only https:// qualifies; http:// is accepted in test mode."""
        return url.startswith("https://") or (
            allow_gvfs_via_http() and url.startswith("http://")
        )

    def _fetch_endpoint(self, url: str, *endpoint: str) -> Optional[str]:
        result = self.context.capture("gvfs-helper", "--remote", url, *endpoint)
        if not result.ok:
            logger.debug(f"gvfs-helper {' '.join(endpoint)} failed: {result.stderr}")
            return None
        return result.stdout

    def list_cache_servers(self, url: str) -> List[CacheServerEntry]:
        """
        Get every cache server the remote advertises.

        Raises:
            ProtocolError: if the config endpoint is unreachable or its
                document is malformed
        """
        if not self.can_use_protocol(url):
            return []

        document = self._fetch_endpoint(url, "config")
        if document is None:
            raise ProtocolError("could not access gvfs/config endpoint")

        servers: Dict[int, CacheServerEntry] = {}
        for token in iterate_json(document):
            parsed = cache_server_field(token)
            if parsed is None:
                continue
            index, name = parsed
            if name == "url" and token.type is JsonType.STRING:
                servers.setdefault(index, CacheServerEntry(index)).url = token.value
            elif name == "globaldefault" and token.type is JsonType.TRUE:
                servers.setdefault(index, CacheServerEntry(index)).is_global_default = True
        return [servers[i] for i in sorted(servers) if servers[i].url is not None]

    def probe(self, url: str, list_servers: bool = False) -> ProbeResult:
        """
        Decide whether `url` speaks the GVFS protocol.

        When only the default server is wanted, an unreachable config
        endpoint means "not supported" so that the caller can fall back to a
        partial clone. When a listing is wanted, that same failure is an
        error. Malformed JSON is an error either way.
        """
        if not self.can_use_protocol(url):
            return ProbeResult(ProbeMode.NONE)

        if list_servers:
            return ProbeResult(ProbeMode.LIST_ONLY, servers=self.list_cache_servers(url))

        document = self._fetch_endpoint(url, "config")
        if document is None:
            # error out quietly, the caller falls back to a partial clone
            return ProbeResult(ProbeMode.NONE)

        marker = first_match(iterate_json(document), is_default_marker)
        if marker is None:
            return ProbeResult(ProbeMode.WITH_DEFAULT)

        index = cache_server_field(marker)[0]
        wanted = url_key(index).lower()
        entry = first_match(
            iterate_json(document),
            lambda t: t.type is JsonType.STRING and t.key.lower() == wanted,
        )
        default_url = entry.value if entry else None
        return ProbeResult(
            ProbeMode.WITH_DEFAULT,
            default_url=default_url,
            servers=[CacheServerEntry(index, default_url, True)],
        )

    def resolve_default_cache_server(self, url: str) -> Optional[str]:
        """Get the URL of the remote's default cache server, if there is one."""
        return self.probe(url).default_url

    def repository_id(self, url: str) -> Optional[str]:
        """Look up `.repository.id` from the remote's vsts/info endpoint."""
        if skip_vsts_info() or not self.can_use_protocol(url):
            return None

        document = self._fetch_endpoint(url, "endpoint", "vsts/info")
        if document is None:
            return None

        try:
            token = first_match(
                iterate_json(document),
                lambda t: t.type is JsonType.STRING
                and t.key.lower() == ".repository.id",
            )
        except ProtocolError as e:
            logger.warning(f"{e} ({document})")
            return None
        return token.value if token else None

    def cache_key(self, url: str) -> str:
        """
        Key of the shared local object cache for `url`.

        Enlistments of the same remote share one cache: ``id_<repository id>``
        when the remote reports an id, ``url_<sha1 of the lowercased URL>``
        otherwise.
        """
        repository_id = self.repository_id(url)
        if repository_id:
            return f"id_{repository_id}"
        digest = hashlib.sha1(url.lower().encode("utf-8")).hexdigest()
        return f"url_{digest}"
