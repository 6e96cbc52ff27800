"""Client construction for the cluster that owns the ILM resources.

ILM, ``_index_template`` and ``is_write_index`` are Elasticsearch APIs, so
the ``elasticsearch`` 7.x client is preferred. ``opensearch-py`` shares the
7.x request surface and is used when it is the only client installed or
when asked for explicitly.
"""

from typing import Any, Optional

from .connection_settings import ConnectionConfig, load_config

try:
    from elasticsearch import Elasticsearch
except ModuleNotFoundError:  # pragma: no cover
    Elasticsearch = None  # type: ignore[assignment]

try:
    from opensearchpy import OpenSearch
except ModuleNotFoundError:  # pragma: no cover
    OpenSearch = None  # type: ignore[assignment]


def _resolve_client_class(library: str = "auto") -> type[Any]:
    candidates = {
        "auto": (Elasticsearch, OpenSearch),
        "elasticsearch": (Elasticsearch,),
        "opensearch": (OpenSearch,),
    }
    if library not in candidates:
        raise ValueError(f"Unknown client library: {library!r}")

    for client_cls in candidates[library]:
        if client_cls is not None:
            return client_cls
    raise ModuleNotFoundError(
        f"No client library available for {library!r}; install "
        "'elasticsearch<8' or 'opensearch-py'."
    )


def client_kwargs(config: ConnectionConfig) -> dict[str, Any]:
    """Keyword arguments shared by both 7.x client constructors."""
    kwargs: dict[str, Any] = {
        "hosts": config.hosts,
        "use_ssl": config.use_ssl,
        "verify_certs": config.verify_certs,
        "ssl_show_warn": config.ssl_show_warn,
        "timeout": config.timeout,
        "max_retries": config.max_retries,
        "retry_on_timeout": config.retry_on_timeout,
        "http_compress": config.http_compress,
    }
    if config.http_auth:
        kwargs["http_auth"] = config.http_auth
    if config.ca_certs:
        kwargs["ca_certs"] = config.ca_certs
    return kwargs


def create_client(
    config: Optional[ConnectionConfig] = None,
    library: str = "auto",
    **overrides,
) -> Any:
    """Create a client for the ILM cluster.

    Args:
        config: An explicit :class:`ConnectionConfig`.  When ``None``,
            one is built via :func:`load_config` (env vars + *overrides*).
        library: ``auto``, ``elasticsearch`` or ``opensearch``.
        **overrides: Passed to :func:`load_config` when *config* is ``None``.
    """
    if config is None:
        config = load_config(**overrides)
    client_cls = _resolve_client_class(library)
    return client_cls(**client_kwargs(config))
