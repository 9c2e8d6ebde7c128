"""
Server package for the HENU OS download portal.

This package provides a FastAPI application over Firebase (Firestore,
Realtime Database, Cloud Storage, Auth) with in-memory stand-ins for each
backend so the portal can run locally and under test without credentials.
"""
