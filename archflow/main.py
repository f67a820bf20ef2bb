from fastapi import FastAPI
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from archflow.api.authorities import router as authorities_router
from archflow.api.comments import router as comments_router
from archflow.api.documents import router as documents_router
from archflow.api.shares import router as shares_router
from archflow.api.submissions import router as submissions_router
from archflow.api.workflows import router as workflows_router
from archflow.errors import register_error_handlers
from archflow.logging import configure_logging
from archflow.observability import ObservabilityMiddleware

app = FastAPI(title="ArchFlow Submissions API")

configure_logging()
app.add_middleware(ObservabilityMiddleware)
register_error_handlers(app)


def _include_api_router(router, dependencies=None):
    app.include_router(router, dependencies=dependencies)
    app.include_router(router, prefix="/api/v1", dependencies=dependencies)


_include_api_router(authorities_router)
_include_api_router(submissions_router)
_include_api_router(documents_router)
_include_api_router(shares_router)
_include_api_router(comments_router)
_include_api_router(workflows_router)


@app.get("/health")
def health_check():
    return {"status": "ok"}


@app.get("/metrics")
def metrics():
    data = generate_latest()
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)
