"""
Terminal WebSocket Router

Close codes: 4001 deployment replaced, 4002 process exited, 4003 not
allowed, 4004 no active deployment.
"""

import logging

from fastapi import APIRouter, WebSocket

from pushdeploy.service.terminal_service import TerminalService

logger = logging.getLogger(__name__)

terminal_router = APIRouter(prefix="/project", tags=["terminal"])

terminal_service = TerminalService()


@terminal_router.websocket("/{owner}/{project}/terminal/ws")
async def terminal_ws(websocket: WebSocket, owner: str, project: str):
    """
    Interactive shell in the running instance

    Send ``{"message": "<line>"}``; output arrives as text frames.
    """
    code = await terminal_service.connect(websocket, owner, project)
    logger.info(f"Terminal of {owner}/{project} closed with {code}")
