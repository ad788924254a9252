from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.config import config
from src.interfaces.errors import ContinuityError
from src.interfaces.subscription import ErrorResponse
from src.routes.communities import router as communities_router
from src.routes.subscriptions import router as subscriptions_router
from src.routes.tokens import router as tokens_router
from src.utils.cron import lifespan
from src.utils.logger import setup_logger

logger = setup_logger(__name__)

app = FastAPI(title="Subscription continuity service", lifespan=lifespan)


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if config.IS_DEVELOPMENT else [],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ContinuityError)
async def continuity_error_handler(_request: Request, exc: ContinuityError) -> JSONResponse:
    return JSONResponse(status_code=int(exc.status_code), content=ErrorResponse(message=exc.message).model_dump())


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=ErrorResponse(message=str(exc.detail)).model_dump())


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unexpected error on {request.url.path}: {str(exc)}", exc_info=True)
    return JSONResponse(status_code=500, content=ErrorResponse(message="Internal server error").model_dump())


app.include_router(communities_router)
app.include_router(subscriptions_router)
app.include_router(tokens_router)
