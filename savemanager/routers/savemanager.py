# savemanager/routers/savemanager.py
"""
SaveManager Routes

Status, action logs and the /backup command for dashboard users.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from savemanager.core import auth
from savemanager.core.auth import require_auth
from savemanager.services import commands
from savemanager.services.save_scheduler import get_scheduler

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/api/savemanager/login")
async def login(request: Request):
    """Exchange the shared API token for a session"""
    body = await request.json()
    email = str(body.get("email", "")).strip().lower()
    token = str(body.get("token", ""))

    if not email or not auth.check_api_token(token):
        raise HTTPException(status_code=401, detail="Invalid credentials")

    request.session["user_info"] = {"email": email, "name": email.split("@")[0]}
    logger.info("[SaveManager] %s logged in", email)
    return JSONResponse({"success": True, "email": email})


@router.get("/api/savemanager/status")
async def get_status(user_info: dict = Depends(require_auth)):
    """Current timers, progress and configuration"""
    scheduler = get_scheduler()
    return JSONResponse({
        "status": "ok",
        "config": scheduler.get_config(),
        "scheduler_status": scheduler.get_status(),
    })


@router.get("/api/savemanager/logs")
async def get_logs(limit: int = 50, user_info: dict = Depends(require_auth)):
    scheduler = get_scheduler()
    return JSONResponse({
        "status": "ok",
        "logs": scheduler.get_logs(limit=limit),
    })


@router.post("/api/savemanager/command")
async def run_command(request: Request, user_info: dict = Depends(require_auth)):
    """Run a SaveManager command line such as 'backup world'"""
    body = await request.json()
    label, args = commands.parse_command_line(str(body.get("command", "")))

    sender = commands.WebSender(
        user_info,
        granted=auth.has_permission(user_info, commands.BACKUP_PERMISSION),
    )
    handled = await commands.dispatch_command(sender, label, args)

    return JSONResponse({
        "handled": handled,
        "messages": commands.drain_mailbox(sender.name),
    })


@router.get("/api/savemanager/messages")
async def get_messages(user_info: dict = Depends(require_auth)):
    """Replies that arrived after the command returned (e.g. backup completed)"""
    return JSONResponse({
        "messages": commands.drain_mailbox(user_info.get("email", "")),
    })
