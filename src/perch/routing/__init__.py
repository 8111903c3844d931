"""Routing — ordered per-method route table with exact-arity matching.

Routes are registered during setup and frozen when the app starts
serving. Lookup tries routes in registration order; first match wins.
"""

from perch.routing.route import PathSegment, Route, RouteMatch
from perch.routing.router import (
    SUPPORTED_METHODS,
    RouteTable,
    match_path,
    match_values,
    parse_path,
)

__all__ = [
    "SUPPORTED_METHODS",
    "PathSegment",
    "Route",
    "RouteMatch",
    "RouteTable",
    "match_path",
    "match_values",
    "parse_path",
]
