from __future__ import annotations

import logging
import os

from fastapi import FastAPI

from .middleware import AuthMiddleware
from .routes import auth as auth_routes
from .routes import layout as layout_routes
from .routes import persons as persons_routes
from .routes import relationships as relationships_routes
from .routes import share as share_routes

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="Family Tree API", version="0.1.0")
app.add_middleware(AuthMiddleware)

app.include_router(auth_routes.router)
app.include_router(persons_routes.router)
app.include_router(relationships_routes.router)
app.include_router(layout_routes.router)
app.include_router(share_routes.router)


@app.get("/health")
def health() -> dict[str, str]:
    return {"ok": "true"}
