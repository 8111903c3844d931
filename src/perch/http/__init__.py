"""HTTP primitives — immutable request, chainable response."""
