"""
HTTP API layer.

Mount the versioned router in the application factory:

    from app.api.v1.router import router
    app.include_router(router, prefix=settings.API_V1_STR)
"""
