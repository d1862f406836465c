"""GameNight service application package.

Layers:
- api: FastAPI routes and outcome-to-HTTP mapping
- services: request handlers and invariant checks
- domain: pydantic models and typed outcomes
- infrastructure: storage gateways (in-memory, Redis)
- core: configuration and logging
"""
