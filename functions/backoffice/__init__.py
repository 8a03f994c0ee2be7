"""
Back-office data layer for the staffing site.

This package wraps the Firebase Realtime Database, Auth and Storage behind
small interfaces, adds a two-tier cache, and exposes the admin screens'
list/mutate operations through a FastAPI application.
"""
