"""
API HTTP (FastAPI).
"""
