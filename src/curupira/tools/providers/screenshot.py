"""Page and element screenshots, persisted through a ScreenshotStore."""

import base64
import time
from typing import Literal

from pydantic import Field, field_validator

from curupira.cdp.client import CDPClient
from curupira.errors import ElementNotFoundError
from curupira.screenshots import ScreenshotStore
from curupira.tools.base import ExecutionContext, SessionArgs, ToolProvider, ToolResult, tool


class CaptureArgs(SessionArgs):
    format: Literal["png", "jpeg"] = Field(default="png", description="Image format")
    quality: int = Field(default=90, description="JPEG quality 0-100")
    full_page: bool = Field(default=False, description="Capture beyond the viewport")
    include_data: bool = Field(default=False, description="Also return the base64 image inline")

    @field_validator("quality", mode="before")
    @classmethod
    def _clamp_quality(cls, value):
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return max(0, min(100, int(value)))
        return value


class ElementCaptureArgs(CaptureArgs):
    selector: str = Field(description="CSS selector of the element")
    padding: int = Field(default=0, ge=0, le=200, description="Extra pixels around the element")


class ScreenshotProvider(ToolProvider):
    name = "screenshot"

    def __init__(self, client: CDPClient, store: ScreenshotStore):
        super().__init__(client)
        self.store = store

    def _save(self, ctx: ExecutionContext, data: str, args: CaptureArgs, extra: dict) -> dict:
        raw = base64.b64decode(data)
        key = f"screenshot-{int(time.time() * 1000)}-{ctx.session_id[:8]}.{args.format}"
        metadata = {
            "sessionId": ctx.session_id,
            "format": args.format,
            "capturedAt": time.time(),
            "size": len(raw),
            **extra,
        }
        if args.format == "jpeg":
            metadata["quality"] = args.quality
        metadata["uri"] = self.store.store(key, raw, metadata)
        if args.include_data:
            metadata["data"] = data
        return metadata

    def _capture_params(self, args: CaptureArgs) -> dict:
        params = {"format": args.format}
        if args.format == "jpeg":
            params["quality"] = args.quality
        return params

    @tool("capture_screenshot", "Capture a screenshot of the page", args=CaptureArgs, error_prefix="Screenshot failed")
    async def capture_screenshot(self, args: CaptureArgs, ctx: ExecutionContext):
        params = self._capture_params(args)
        params["captureBeyondViewport"] = args.full_page
        result = await ctx.send("Page.captureScreenshot", params)
        if not result.get("data"):
            return ToolResult.fail("Chrome returned no screenshot data")
        return self._save(ctx, result["data"], args, {"fullPage": args.full_page})

    @tool(
        "capture_element_screenshot",
        "Capture a screenshot of one element",
        args=ElementCaptureArgs,
        error_prefix="Element screenshot failed",
    )
    async def capture_element_screenshot(self, args: ElementCaptureArgs, ctx: ExecutionContext):
        await ctx.ensure_domain("DOM")
        document = await ctx.send("DOM.getDocument", {"depth": 0})
        found = await ctx.send("DOM.querySelector", {"nodeId": document["root"]["nodeId"], "selector": args.selector})
        if not found.get("nodeId"):
            raise ElementNotFoundError(f"Element not found: {args.selector}")

        box = await ctx.send("DOM.getBoxModel", {"nodeId": found["nodeId"]})
        quad = box.get("model", {}).get("border", [])
        if len(quad) < 8:
            return ToolResult.fail(f"Element has no layout box: {args.selector}")

        xs, ys = quad[0::2], quad[1::2]
        clip = {
            "x": max(0, min(xs) - args.padding),
            "y": max(0, min(ys) - args.padding),
            "width": max(xs) - min(xs) + 2 * args.padding,
            "height": max(ys) - min(ys) + 2 * args.padding,
            "scale": 1,
        }
        params = self._capture_params(args)
        params.update({"clip": clip, "captureBeyondViewport": True})
        result = await ctx.send("Page.captureScreenshot", params)
        if not result.get("data"):
            return ToolResult.fail("Chrome returned no screenshot data")
        return self._save(ctx, result["data"], args, {"selector": args.selector, "bounds": clip})
