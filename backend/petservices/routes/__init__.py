"""
PetServices Backend — Route Modules
====================================

Each module exposes `router`; modules with both public and token-gated
endpoints also expose `protected_router` (built with ProtectedRoute).
Routes sit at the root path, without an /api prefix.
"""
