"""Router registration for the Study Board API.

All routers carry their full paths, so they are included without
prefixes.
"""


def register_routers(app):
    from .account import router as account_router
    from .resources import router as resources_router
    from .academics import router as academics_router
    from .notifications import router as notifications_router

    app.include_router(account_router)
    app.include_router(resources_router)
    app.include_router(academics_router)
    app.include_router(notifications_router)
