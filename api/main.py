from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from api.routers import chat, health, ingest, personas
from orchestrator.orchestrator_manager import OrchestratorManager
from persona_chat.exception.custom_exception import PersonaChatException
from persona_chat.logger import GLOBAL_LOGGER as log


# Use lifespan instead of deprecated on_event
@asynccontextmanager
async def lifespan(app: FastAPI):
    log.info("Application startup initiated")
    owned = getattr(app.state, "manager", None) is None
    if owned:
        app.state.manager = OrchestratorManager()
        await app.state.manager.startup()
    yield
    if owned:
        await app.state.manager.aclose()
    log.info("Application shutdown")


app = FastAPI(title="Persona RAG Chat Backend", version="1.0", lifespan=lifespan)


@app.exception_handler(PersonaChatException)
async def persona_chat_exception_handler(request: Request, exc: PersonaChatException):
    log.warning(
        "Request failed | path=%s | code=%s | error=%s",
        request.url.path,
        exc.code,
        exc.error_message,
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = f"{field}: {first.get('msg', 'invalid request')}" if field else "Invalid request"
    return JSONResponse(status_code=400, content={"code": "INVALID_REQUEST", "message": message})


# Router Registration
app.include_router(health.router, prefix="/health", tags=["health"])
app.include_router(chat.router, tags=["chat"])
app.include_router(ingest.router, tags=["ingest"])
app.include_router(personas.router, tags=["personas"])


@app.get("/")
async def root():
    return {"message": "Backend is running"}
