"""Request dispatch: static check, method check, CSRF, routing, middleware."""
