from fastapi import FastAPI

from purchasing.app.api.v1.router import router as v1_router
from purchasing.app.core.logging import configure_logging

configure_logging()

app = FastAPI(title="Purchasing", version="0.1.0")
app.include_router(v1_router, prefix="/v1")
