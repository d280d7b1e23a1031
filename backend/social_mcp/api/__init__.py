"""HTTP/JSON-RPC surface: gateway, routes and application factory."""
