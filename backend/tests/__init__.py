"""
pytest suite for the payments backend.

Test categories:
- Unit tests: decoding, validation, fee math (marker: unit)
- Service tests: verifier, ledger and managers against a fake chain client
- API tests: routes through the ASGI app (marker: api)
- Concurrency tests: racing writers on a temp-file SQLite database
"""
