from __future__ import annotations

from urllib.parse import urlparse, urlunparse

_LOCAL_HOSTS = {"localhost", "127.0.0.1", "0.0.0.0"}
_DOCKER_HOST = "host.docker.internal"

_PLACEHOLDER_KEYS = {"", "REPLACE_WITH_API_KEY"}


def dockerize_localhost(url: str | None, *, enabled: bool) -> str | None:
    """Point loopback hosts at the docker host alias, keeping credentials and port."""

    if not enabled or not url:
        return url

    parsed = urlparse(url)
    host = (parsed.hostname or "").lower()
    if host not in _LOCAL_HOSTS:
        return url

    userinfo, at, _ = parsed.netloc.rpartition("@")
    port = f":{parsed.port}" if parsed.port else ""
    return urlunparse(parsed._replace(netloc=f"{userinfo}{at}{_DOCKER_HOST}{port}"))


def graphql_endpoint(base_url: str) -> str:
    """Return the GraphQL endpoint for a Stash base URL.

    A URL that already ends in ``/graphql`` is returned unchanged.
    """
    trimmed = base_url.rstrip("/")
    if trimmed.endswith("/graphql"):
        return trimmed
    return f"{trimmed}/graphql"


def has_valid_api_key(api_key: str | None) -> bool:
    return bool(api_key and api_key.strip() not in _PLACEHOLDER_KEYS)
