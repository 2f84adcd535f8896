"""
PetServices Backend — Middleware Package
=========================================

Request → [Request ID] → [Access Log] → [GZip] → [CORS] → Route

Authentication is not a middleware: protected routers use
`petservices.dependencies.ProtectedRoute`, so public routes and the 404
catch-all never look at the Authorization header.
"""
