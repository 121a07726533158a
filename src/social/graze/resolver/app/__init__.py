"""
Resolver Application Layer

This package exposes the resolver over HTTP using the aiohttp framework, following
the uni-resolver web API.

Key Components:
- cli.py: Entry point for running the web server
- server.py: Web server configuration, middleware and startup/shutdown tasks
- config.py: Configuration management using Pydantic settings
- metrics.py: Vendor-agnostic metrics client used by the resolver and the server
- health.py: Health gauge backing the readiness probe
- handlers/: Request handlers

Endpoints:
- GET /1.0/identifiers/{identifier}: Resolve a DID
- GET /1.0/properties, /1.0/methods, /1.0/testIdentifiers, /1.0/traits
- GET /internal/alive, /internal/ready
"""
