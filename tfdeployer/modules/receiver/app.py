#!/usr/bin/env python3
"""
Development log collector.

Implements the collector side of the log protocol so the deployer can be
exercised locally:

    tfdeployer-log-receiver 127.0.0.1 8090
    curl -XPOST http://127.0.0.1:8090/sessions

The URL returned by the second command is the deployer's ``logURL``.
"""

import argparse
import json
import logging
import uuid
from dataclasses import dataclass
from typing import Dict

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from tfdeployer.logging_config import get_logging_config
from tfdeployer.modules.relay import LogData

logger = logging.getLogger("tfdeployer.receiver")


@dataclass
class ReceiverSession:
    id: str
    next_sequence: int = 0


def create_receiver_app(base_url: str) -> FastAPI:
    """
    Create the collector app.

    Args:
        base_url: Externally visible URL of the app, used to build session URLs
    """
    base_url = base_url.rstrip("/")
    app = FastAPI(title="tfdeployer log receiver")
    sessions: Dict[str, ReceiverSession] = {}
    app.state.sessions = sessions

    def session_url(session_id: str, sequence: int) -> str:
        return f"{base_url}/sessions/{session_id}/{sequence}"

    @app.post("/sessions")
    async def create_session():
        session = ReceiverSession(id=str(uuid.uuid4()))
        sessions[session.id] = session
        location = session_url(session.id, 0)
        logger.info(f"created session {session.id}")
        return PlainTextResponse(location, status_code=201, headers={"Location": location})

    @app.post("/sessions/{session_id}/{sequence}")
    async def post_session(session_id: str, sequence: str, request: Request):
        session = sessions.get(session_id)
        if session is None:
            return PlainTextResponse("Not found\n", status_code=404)
        if not sequence.isdigit() or int(sequence) != session.next_sequence:
            return PlainTextResponse("Bad sequence\n", status_code=400)

        body = await request.body()
        try:
            data = LogData.model_validate(json.loads(body))
        except ValueError:
            logger.error("Bad JSON, sending 400")
            return PlainTextResponse("Bad JSON\n", status_code=400)

        if data.done:
            for line in data.lines:
                logger.info(f"line: {line}")
            if data.error:
                logger.info(f"error: {data.error}")
            else:
                logger.info("done.")
            del sessions[session_id]
            return PlainTextResponse("Done.\n")

        session.next_sequence += 1
        for line in data.lines:
            logger.info(f"line: {line}")
        return JSONResponse({"continue": session_url(session_id, session.next_sequence)})

    @app.api_route("/{path:path}", methods=["GET", "POST", "PUT", "DELETE", "PATCH"])
    async def not_found(path: str):
        return Response("Not found\n", status_code=404, media_type="text/plain")

    return app


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Development log collector for tfdeployer")
    parser.add_argument("ip", help="Address to listen on")
    parser.add_argument("port", type=int, help="Port to listen on")
    args = parser.parse_args()

    base_url = f"http://{args.ip}:{args.port}"
    app = create_receiver_app(base_url)
    print(f"Create a session with\n\n  curl -XPOST {base_url}/sessions\n")

    uvicorn.run(
        app,
        host=args.ip,
        port=args.port,
        log_config=get_logging_config(),
    )


if __name__ == "__main__":
    main()
