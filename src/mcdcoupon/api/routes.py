"""FastAPI router for the browser front-end."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse

from mcdcoupon.activity import ActivityLog
from mcdcoupon.api.page import render_index
from mcdcoupon.config import ConfigStore, mask_token, normalize_token
from mcdcoupon.errors import ConfigError, CouponError
from mcdcoupon.mcp_server.rendering import render_server_time
from mcdcoupon.models import ApiResponse, TokenPayload
from mcdcoupon.upstream.http_client import CouponClient

logger = logging.getLogger(__name__)

router = APIRouter()

NO_TOKEN_MESSAGE = "Please set a token first"


def _get_client(request: Request) -> CouponClient:
    return request.app.state.client  # type: ignore[return-value]


def _get_store(request: Request) -> ConfigStore:
    return request.app.state.store  # type: ignore[return-value]


def _get_activity(request: Request) -> ActivityLog:
    return request.app.state.activity  # type: ignore[return-value]


ClientDepends = Annotated[CouponClient, Depends(_get_client)]
StoreDepends = Annotated[ConfigStore, Depends(_get_store)]
ActivityDepends = Annotated[ActivityLog, Depends(_get_activity)]


def _failure(activity: ActivityLog, message: str) -> ApiResponse:
    activity.add(message)
    return ApiResponse(success=False, message=message)


@router.get("/", response_class=HTMLResponse, tags=["web"])
async def index(store: StoreDepends) -> HTMLResponse:
    return HTMLResponse(render_index(has_token=store.has_valid_token()))


@router.post("/api/token", response_model=ApiResponse, tags=["web"])
async def set_token(
    body: TokenPayload,
    client: ClientDepends,
    store: StoreDepends,
    activity: ActivityDepends,
) -> ApiResponse:
    token = normalize_token(body.token)
    if not token:
        return _failure(activity, "Token must not be empty")
    try:
        valid = await client.validate_token(token)
    except CouponError as exc:
        return _failure(activity, f"Validation failed: {exc}")
    if not valid:
        return _failure(activity, "Invalid token, please try again")
    try:
        store.set_token(token)
    except ConfigError as exc:
        return _failure(activity, f"Token accepted but not saved: {exc}")
    logger.info("Stored token %s", mask_token(token))
    activity.add("Token verified")
    activity.add(f"Config saved to {store.path}")
    return ApiResponse(success=True, message="Token verified")


@router.get("/api/coupons", response_model=ApiResponse, tags=["web"])
async def my_coupons(client: ClientDepends, store: StoreDepends, activity: ActivityDepends) -> ApiResponse:
    if not store.has_valid_token():
        return ApiResponse(success=False, message=NO_TOKEN_MESSAGE)
    activity.add("Loading claimed coupons...")
    try:
        coupons = await client.list_mine()
    except CouponError as exc:
        return _failure(activity, f"Failed to load coupons: {exc}")
    message = f"Found {len(coupons)} coupons" if coupons else "No coupons yet"
    activity.add(message)
    return ApiResponse(success=True, message=message, coupons=coupons)


@router.get("/api/available", response_model=ApiResponse, tags=["web"])
async def available_coupons(client: ClientDepends, store: StoreDepends, activity: ActivityDepends) -> ApiResponse:
    if not store.has_valid_token():
        return ApiResponse(success=False, message=NO_TOKEN_MESSAGE)
    try:
        coupons = await client.list_available()
    except CouponError as exc:
        return _failure(activity, f"Failed to load available coupons: {exc}")
    message = f"{len(coupons)} coupons available"
    activity.add(message)
    return ApiResponse(success=True, message=message, coupons=coupons)


@router.post("/api/claim", response_model=ApiResponse, tags=["web"])
async def claim_all(client: ClientDepends, store: StoreDepends, activity: ActivityDepends) -> ApiResponse:
    if not store.has_valid_token():
        return ApiResponse(success=False, message=NO_TOKEN_MESSAGE)
    activity.add("Claiming all coupons...")
    try:
        report = await client.claim_all()
    except CouponError as exc:
        return _failure(activity, f"Claim failed: {exc}")
    for outcome in report.failed[:5]:
        activity.add(f"Not claimed: {outcome.title or outcome.coupon_id} ({outcome.reason})")
    message = f"Claimed {len(report.succeeded)} of {len(report.outcomes)} coupons"
    activity.add(message)
    return ApiResponse(success=True, message=message, outcomes=report.outcomes)


@router.post("/api/reset", response_model=ApiResponse, tags=["web"])
async def reset_token(store: StoreDepends, activity: ActivityDepends) -> ApiResponse:
    try:
        store.reset_token()
    except ConfigError as exc:
        return _failure(activity, f"Reset failed: {exc}")
    activity.add("Token reset")
    activity.add("Please enter a new token")
    return ApiResponse(success=True, message="Token reset")


@router.get("/api/time", response_model=ApiResponse, tags=["web"])
async def server_time(client: ClientDepends, store: StoreDepends, activity: ActivityDepends) -> ApiResponse:
    if not store.has_valid_token():
        return ApiResponse(success=False, message=NO_TOKEN_MESSAGE)
    try:
        result = await client.server_time()
    except CouponError as exc:
        return _failure(activity, f"Failed to fetch server time: {exc}")
    return ApiResponse(success=True, message=render_server_time(result))


@router.get("/api/logs", response_model=ApiResponse, tags=["web"])
async def logs(activity: ActivityDepends) -> ApiResponse:
    return ApiResponse(success=True, message="ok", logs=activity.tail())
