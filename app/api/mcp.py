import asyncio
import json
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, Response
from sse_starlette.sse import EventSourceResponse
from pydantic import BaseModel
from typing import Dict, Any, Optional
from loguru import logger

from app.core.config import settings
from app.core.errors import DebridError
from app.services.apibay import apibay_service
from app.services.models import Failed, Ready, ResolutionOutcome, TimedOut
from app.services.resolver import resolve_magnet, unlock_link

router = APIRouter()

# --- Models ---

class JsonRpcRequest(BaseModel):
    jsonrpc: str
    method: str
    params: Optional[Dict[str, Any]] = None
    id: Optional[Any] = None


TOOLS = [
    {
        "name": "search",
        "description": "Search apibay for magnet links",
        "inputSchema": {
            "type": "object",
            "properties": {
                "query": {"type": "string"}
            },
            "required": ["query"]
        }
    },
    {
        "name": "resolve",
        "description": "Resolve a magnet into playable video URLs via AllDebrid",
        "inputSchema": {
            "type": "object",
            "properties": {
                "magnet": {"type": "string"},
                "api_keys": {  # Keys may also come from the server environment
                    "type": "object",
                    "properties": {
                        "alldebrid": {"type": "string"}
                    }
                }
            },
            "required": ["magnet"]
        }
    },
    {
        "name": "unlock",
        "description": "Unlock a single hoster link into a direct URL via AllDebrid",
        "inputSchema": {
            "type": "object",
            "properties": {
                "link": {"type": "string"},
                "api_keys": {
                    "type": "object",
                    "properties": {
                        "alldebrid": {"type": "string"}
                    }
                }
            },
            "required": ["link"]
        }
    }
]


def outcome_payload(outcome: ResolutionOutcome) -> Dict[str, Any]:
    payload = outcome.model_dump(mode="json")
    payload["message"] = outcome.message
    return payload


def rpc_result(req_id: Any, data: Any) -> Dict[str, Any]:
    return {
        "jsonrpc": "2.0",
        "id": req_id,
        "result": {
            "content": [
                {"type": "text", "text": json.dumps(data)}
            ]
        }
    }


def rpc_error(req_id: Any, code: int, message: str, data: Any = None) -> Dict[str, Any]:
    error: Dict[str, Any] = {"code": code, "message": message}
    if data is not None:
        error["data"] = data
    return {"jsonrpc": "2.0", "id": req_id, "error": error}

# --- SSE Endpoints ---

@router.get("/sse")
async def sse_endpoint(request: Request):
    """
    MCP Handshake via Server-Sent Events.
    """
    async def event_generator():
        # Behind a proxy the Host header carries the public domain
        host = request.headers.get("host", str(request.base_url).replace("http://", "").replace("https://", "").rstrip("/"))
        proto = "https" if request.headers.get("x-forwarded-proto") == "https" else request.url.scheme

        endpoint_url = f"{proto}://{host}/mcp/messages"
        logger.info(f"Client connected. Sending endpoint: {endpoint_url}")

        yield {
            "event": "endpoint",
            "data": endpoint_url
        }

        # Keep alive
        while True:
            await asyncio.sleep(20)
            yield {"comment": "ping"}

    return EventSourceResponse(event_generator())


@router.get("/resolve/stream")
async def resolve_stream(magnet: str, api_key: Optional[str] = None):
    """
    Streams resolution progress, then a single outcome event.
    Dropping the connection cancels the resolution.
    """
    async def event_generator():
        queue: asyncio.Queue = asyncio.Queue()
        task = asyncio.create_task(resolve_magnet(magnet, api_key, on_progress=queue.put_nowait))
        task.add_done_callback(lambda _: queue.put_nowait(None))
        try:
            while True:
                progress = await queue.get()
                if progress is None:
                    break
                yield {"event": "progress", "data": progress.model_dump_json()}

            try:
                outcome = task.result()
            except Exception as e:
                logger.exception("Resolve stream error")
                yield {"event": "error", "data": json.dumps({"message": str(e)})}
                return
            yield {"event": "outcome", "data": json.dumps(outcome_payload(outcome))}
        finally:
            if not task.done():
                logger.info("Resolve stream closed by client, cancelling resolution")
                task.cancel()

    return EventSourceResponse(event_generator())

# --- JSON-RPC Endpoint ---

@router.post("/messages")
async def handle_json_rpc(request: JsonRpcRequest):
    """
    MCP Method Handler.
    """
    try:
        method = request.method
        params = request.params or {}
        req_id = request.id

        logger.info(f"Method: {method}")

        if method == "initialize":
            return {
                "jsonrpc": "2.0",
                "id": req_id,
                "result": {
                    "protocolVersion": "0.1.0",
                    "capabilities": {
                        "tools": {"listChanged": True}
                    },
                    "serverInfo": {
                        "name": settings.PROJECT_NAME,
                        "version": settings.VERSION
                    }
                }
            }

        if method == "notifications/initialized":
            # Notifications don't get responses in JSON-RPC spec
            return Response(status_code=204)

        if method == "tools/list":
            return {
                "jsonrpc": "2.0",
                "id": req_id,
                "result": {"tools": TOOLS}
            }

        if method == "tools/call":
            tool_name = params.get("name")
            args = params.get("arguments") or {}
            api_key = (args.get("api_keys") or {}).get("alldebrid") or settings.ALLDEBRID_API_KEY

            if tool_name == "search":
                query = args.get("query")
                if not query:
                    return rpc_error(req_id, -32602, "Missing query")
                results = await apibay_service.search(query)
                return rpc_result(req_id, [r.model_dump() for r in results])

            if tool_name == "resolve":
                if not api_key:
                    return rpc_error(req_id, -32000, "Missing AllDebrid API Key")
                magnet = args.get("magnet")
                if not magnet:
                    return rpc_error(req_id, -32602, "Missing magnet")

                outcome = await resolve_magnet(magnet, api_key)

                if isinstance(outcome, Ready):
                    return rpc_result(req_id, outcome_payload(outcome))
                if isinstance(outcome, TimedOut):
                    return rpc_error(req_id, -32002, outcome.message, {"attempts": outcome.attempts})
                if isinstance(outcome, Failed):
                    return rpc_error(req_id, -32001, outcome.message, {"code": outcome.code})

            if tool_name == "unlock":
                if not api_key:
                    return rpc_error(req_id, -32000, "Missing AllDebrid API Key")
                link = args.get("link")
                if not link:
                    return rpc_error(req_id, -32602, "Missing link")
                try:
                    stream_url = await unlock_link(link, api_key)
                except DebridError as e:
                    return rpc_error(req_id, -32001, e.message, {"code": e.code})
                return rpc_result(req_id, {"success": True, "stream": {"url": stream_url}})

        return JSONResponse(
            status_code=404,
            content={"jsonrpc": "2.0", "error": {"code": -32601, "message": "Method not found"}, "id": req_id}
        )

    except Exception as e:
        logger.exception("MCP Error")
        return JSONResponse(
            status_code=500,
            content={"jsonrpc": "2.0", "error": {"code": -32603, "message": str(e)}, "id": request.id}
        )
