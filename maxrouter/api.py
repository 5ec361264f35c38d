"""
FastAPI application and endpoints
"""

import json
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Mapping, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, StreamingResponse

from . import __version__
from .config import Config
from .exceptions import InternalError, RouterError, StreamProtocolError, TranslationError
from .guard import ensure_required_prefix
from .model_mapper import DEFAULT_MODEL, EMPTY_OVERRIDES, LOW_TIER_MODEL
from .models import ChatCompletionRequest, ModelInfo, ModelList
from .request_translator import to_native
from .response_translator import to_openai
from .streaming import create_stream_translator

logger = logging.getLogger(__name__)

SSE_HEADERS = {"Cache-Control": "no-cache", "Connection": "keep-alive"}
NATIVE_PATHS = ("/v1/messages", "/v1/v1/messages")


def create_app(
    upstream: Any,
    config: Optional[Config] = None,
    overrides: Optional[Mapping[str, str]] = None,
) -> FastAPI:
    """
    Create and configure FastAPI application.

    Args:
        upstream: Object with async `send`, and async-generator `stream` and
            `stream_raw` methods (see UpstreamClient)
        config: Router configuration (defaults to environment)
        overrides: Model override snapshot loaded at startup
    """
    config = config or Config()
    overrides = overrides if overrides is not None else EMPTY_OVERRIDES

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await upstream.close()

    app = FastAPI(title="maxrouter", version=__version__, lifespan=lifespan)

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        error = TranslationError(_describe_validation(exc))
        return _error_response(error, native=request.url.path in NATIVE_PATHS)

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {"status": "ok", "service": "maxrouter"}

    @app.get("/v1/models")
    async def list_models():
        """Native models the router maps onto (OpenAI list format)"""
        names = {DEFAULT_MODEL, LOW_TIER_MODEL, *overrides.values()}
        if config.model_override:
            names.add(config.model_override)
        return ModelList(data=[ModelInfo(id=name) for name in sorted(names)]).model_dump()

    @app.post("/v1/chat/completions")
    async def chat_completions(request: ChatCompletionRequest):
        """OpenAI-compatible chat completion endpoint"""
        try:
            native = to_native(
                request,
                overrides=overrides,
                default_model=config.model_override,
                default_max_tokens=config.default_max_tokens,
            )
            payload = ensure_required_prefix(native.to_payload())
            logger.info(f"POST /v1/chat/completions {request.model} -> {native.model} stream={bool(request.stream)}")
            logger.debug(f"Native request: {json.dumps(payload)}")

            if request.stream:
                events = await _prime(upstream.stream(payload))
                translator = create_stream_translator(request.model)
                return StreamingResponse(
                    translator.translate(events),
                    media_type="text/event-stream",
                    headers=SSE_HEADERS,
                )

            response = await upstream.send(payload)
            logger.debug(f"Native response: {json.dumps(response)}")
            return to_openai(response, request.model).model_dump()

        except RouterError as e:
            logger.warning(f"Chat completion failed ({e.status_code}): {e.message}")
            return _error_response(e, native=False)
        except Exception as e:
            logger.exception(f"Error: {e}")
            return _error_response(InternalError(str(e)), native=False)

    async def messages(request: Request):
        """Native Messages passthrough with the system prompt guard applied"""
        try:
            try:
                body = await request.json()
            except ValueError:
                raise TranslationError("Request body must be valid JSON")
            if not isinstance(body, dict):
                raise TranslationError("Request body must be a JSON object")

            payload = ensure_required_prefix(body)
            logger.info(f"POST {request.url.path} {payload.get('model')} stream={bool(payload.get('stream'))}")
            logger.debug(f"Native request: {json.dumps(payload)}")

            if payload.get("stream"):
                chunks = await _prime(upstream.stream_raw(payload))
                return StreamingResponse(
                    _relay_native(chunks),
                    media_type="text/event-stream",
                    headers=SSE_HEADERS,
                )

            response = await upstream.send(payload)
            return JSONResponse(content=response)

        except RouterError as e:
            logger.warning(f"Messages request failed ({e.status_code}): {e.message}")
            return _error_response(e, native=True)
        except Exception as e:
            logger.exception(f"Error: {e}")
            return _error_response(InternalError(str(e)), native=True)

    # The doubled prefix is sent by some SDKs that append /v1 to a base URL ending in /v1
    for path in NATIVE_PATHS:
        app.add_api_route(path, messages, methods=["POST"])

    return app


def _error_response(error: RouterError, native: bool) -> JSONResponse:
    body = error.to_native() if native else error.to_openai()
    return JSONResponse(status_code=error.status_code, content=body)


def _describe_validation(exc: RequestValidationError) -> str:
    details = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        details.append(f"{location}: {err.get('msg')}" if location else str(err.get("msg")))
    return "Invalid request: " + "; ".join(details)


async def _prime(source: AsyncIterator[Any]) -> AsyncIterator[Any]:
    """
    Await the first upstream item so HTTP errors surface before the response starts.

    UpstreamError propagates to the caller; a protocol error is replayed into
    the returned iterator so it ends the stream in-band.
    """
    try:
        first = await source.__anext__()
    except StopAsyncIteration:
        return _resume([], None, source)
    except StreamProtocolError as e:
        return _resume([], e, source)
    return _resume([first], None, source)


async def _resume(prefetched: list, error: Optional[RouterError], source: AsyncIterator[Any]) -> AsyncIterator[Any]:
    try:
        if error is not None:
            raise error
        for item in prefetched:
            yield item
        async for item in source:
            yield item
    finally:
        await source.aclose()


async def _relay_native(chunks: AsyncIterator[bytes]) -> AsyncIterator[bytes]:
    """Relay upstream bytes; a mid-stream failure becomes a native error event"""
    try:
        async for chunk in chunks:
            yield chunk
    except RouterError as e:
        logger.error(f"Native stream failed: {e.message}")
        yield f"event: error\ndata: {json.dumps(e.to_native())}\n\n".encode("utf-8")
    finally:
        await chunks.aclose()
