"""Provider adapters, one collector per service kind."""

from homers.core.models import ServiceKind
from homers.core.ports import CollectorPort
from homers.providers import jellyfin, overseerr, plex, radarr, sonarr, tautulli
from homers.providers.catalog import collect_lidarr, collect_readarr

COLLECTORS: dict[ServiceKind, CollectorPort] = {
    ServiceKind.SONARR: sonarr.collect,
    ServiceKind.RADARR: radarr.collect,
    ServiceKind.LIDARR: collect_lidarr,
    ServiceKind.READARR: collect_readarr,
    ServiceKind.TAUTULLI: tautulli.collect,
    ServiceKind.PLEX: plex.collect,
    ServiceKind.JELLYFIN: jellyfin.collect,
    ServiceKind.OVERSEERR: overseerr.collect_overseerr,
    ServiceKind.JELLYSEERR: overseerr.collect_jellyseerr,
}

__all__ = ["COLLECTORS"]
