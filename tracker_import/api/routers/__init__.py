"""
FastAPI routers for the import pipeline endpoints.
"""
