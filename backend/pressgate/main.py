"""
# `pressgate/main.py` - Application entry point

Builds the FastAPI app: CORS, routers and the mapping from authorization
errors to HTTP responses.

## Routers
- `/me` - profile (created on first sign-in) and UI affordances
- `/posts` - public read, guarded create/edit/delete
- `/posts/{id}/comments`, `/comments/{id}` - comments and moderation
- `/site/settings` - site configuration (admin writes)

## Error mapping
| Error              | Status |
|--------------------|--------|
| Unauthenticated    | 401    |
| PermissionDenied   | 403    |
| NotFound           | 404    |
| Conflict           | 409    |
| StoreUnavailable   | 503    |
"""
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from pressgate.config import settings
from pressgate.core.errors import Conflict, NotFound, PermissionDenied, StoreUnavailable, Unauthenticated
from pressgate.routers import comments, me, posts, site

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("pressgate")

app = FastAPI(
    title="Pressgate API",
    description="Posts, comments and site settings behind a five-role permission model.",
    version="1.0.0",
    redirect_slashes=False,
    debug=settings.debug,
)

# Configure CORS (allow front-end domain or all origins as specified)
allow_origins = [origin.strip() for origin in settings.allowed_origins.split(",")] if settings.allowed_origins else ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(me.router)
app.include_router(posts.router)
app.include_router(comments.router)
app.include_router(site.router)


@app.exception_handler(Unauthenticated)
async def _unauthenticated(request: Request, exc: Unauthenticated):
    return JSONResponse(status_code=401, content={"detail": exc.detail}, headers={"WWW-Authenticate": "Bearer"})


@app.exception_handler(PermissionDenied)
async def _permission_denied(request: Request, exc: PermissionDenied):
    return JSONResponse(status_code=403, content={"detail": exc.message, "action": exc.action})


@app.exception_handler(NotFound)
async def _not_found(request: Request, exc: NotFound):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(Conflict)
async def _conflict(request: Request, exc: Conflict):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(StoreUnavailable)
async def _store_unavailable(request: Request, exc: StoreUnavailable):
    logger.warning("Store unavailable on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=503,
        content={"detail": "The data store is temporarily unavailable. Please retry."},
        headers={"Retry-After": "1"},
    )


# Run the app directly with uvicorn (for development)
if __name__ == "__main__":
    import uvicorn
    uvicorn.run("pressgate.main:app", host="0.0.0.0", port=8000, reload=True)
