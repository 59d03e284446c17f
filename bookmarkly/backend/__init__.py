from dataclasses import dataclass

from bookmarkly.backend.auth import AuthService
from bookmarkly.backend.data import DataService
from bookmarkly.backend.providers import build_providers
from bookmarkly.backend.realtime import RealtimeHub


@dataclass
class Backend:
    auth: AuthService
    data: DataService
    realtime: RealtimeHub


def create_backend(config, providers=None) -> Backend:
    hub = RealtimeHub()
    auth = AuthService(
        providers if providers is not None else build_providers(config),
        session_ttl=config["SESSION_TTL_SECONDS"],
        refresh_ttl=config["REFRESH_TTL_SECONDS"],
    )
    return Backend(auth=auth, data=DataService(hub), realtime=hub)
