"""Unlocking resolvers used as stages of the resolver chain."""

from unlocker_mcp.resolvers.base import Resolver, StageResult
from unlocker_mcp.resolvers.http_resolver import HttpResolver, parse_payload

__all__ = ["Resolver", "StageResult", "HttpResolver", "parse_payload"]
