"""
Feature modules live under this package.

Each module owns its routes/models/service, while reusing platform primitives
(auth, access, audit, DB session).
"""
