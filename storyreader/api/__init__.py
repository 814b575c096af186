"""
HTTP API routers for the story reading engine
"""
