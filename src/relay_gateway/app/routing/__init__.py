"""Proxy pipeline: upstream table, header filter, forwarder, dispatch."""

from .dispatcher import (
    PROXY_METHODS,
    GatewayDeps,
    create_api_root_router,
    create_upstream_router,
    dispatch,
    to_response,
)
from .headers import filter_backward, filter_forward, header_value, is_forwardable
from .proxy import (
    NO_BODY_METHODS,
    BodyReadError,
    Forwarder,
    InboundRequest,
    OutboundRequest,
    ProxyResult,
    Rejected,
    RejectionKind,
    Relayed,
    build_target_url,
)
from .upstreams import UpstreamConfig, UpstreamTable, build_upstream_table, split_segments

__all__ = [
    'BodyReadError',
    'Forwarder',
    'GatewayDeps',
    'InboundRequest',
    'NO_BODY_METHODS',
    'OutboundRequest',
    'PROXY_METHODS',
    'ProxyResult',
    'Rejected',
    'RejectionKind',
    'Relayed',
    'UpstreamConfig',
    'UpstreamTable',
    'build_target_url',
    'build_upstream_table',
    'create_api_root_router',
    'create_upstream_router',
    'dispatch',
    'filter_backward',
    'filter_forward',
    'header_value',
    'is_forwardable',
    'split_segments',
    'to_response',
]
