"""DOM queries and element interaction by CSS selector."""

import asyncio
import time

from pydantic import Field

from curupira.errors import ElementNotFoundError
from curupira.tools.base import ExecutionContext, SessionArgs, ToolProvider, ToolResult, build_script, tool

SET_VALUE = """(selector, value) => {
  const el = document.querySelector(selector);
  if (!el) return { error: 'Element not found: ' + selector };
  const proto = el instanceof HTMLTextAreaElement ? HTMLTextAreaElement.prototype
    : el instanceof HTMLSelectElement ? HTMLSelectElement.prototype : HTMLInputElement.prototype;
  const setter = Object.getOwnPropertyDescriptor(proto, 'value');
  if (setter && setter.set) setter.set.call(el, value); else el.value = value;
  el.dispatchEvent(new Event('input', { bubbles: true }));
  el.dispatchEvent(new Event('change', { bubbles: true }));
  return { selector, value: el.value };
}"""

GET_TEXT = """(selector) => {
  const el = document.querySelector(selector);
  if (!el) return { error: 'Element not found: ' + selector };
  return { selector, text: el.innerText !== undefined ? el.innerText : el.textContent };
}"""

EXISTS = """(selector, visible) => {
  const el = document.querySelector(selector);
  if (!el) return false;
  if (!visible) return true;
  const rect = el.getBoundingClientRect();
  const style = getComputedStyle(el);
  return rect.width > 0 && rect.height > 0 && style.visibility !== 'hidden' && style.display !== 'none';
}"""


class SelectorArgs(SessionArgs):
    selector: str = Field(description="CSS selector")


class SelectorAllArgs(SelectorArgs):
    limit: int = Field(default=50, ge=1, le=1000, description="Maximum elements to describe")


class AttributeArgs(SelectorArgs):
    name: str = Field(description="Attribute name")


class SetAttributeArgs(AttributeArgs):
    value: str = Field(description="Attribute value")


class SetValueArgs(SelectorArgs):
    value: str = Field(description="Value to set on the input")


class WaitArgs(SelectorArgs):
    timeout: float = Field(default=10.0, gt=0, le=120, description="Seconds to wait")
    visible: bool = Field(default=False, description="Also require the element to be visible")
    poll_interval: float = Field(default=0.1, gt=0, description="Seconds between checks")


def _attributes(flat: list[str]) -> dict[str, str]:
    """CDP returns attributes as [name1, value1, name2, value2, ...]."""
    return dict(zip(flat[::2], flat[1::2]))


class DOMProvider(ToolProvider):
    name = "dom"

    async def _document(self, ctx: ExecutionContext) -> int:
        await ctx.ensure_domain("DOM")
        result = await ctx.send("DOM.getDocument", {"depth": 0})
        return result["root"]["nodeId"]

    async def _query(self, ctx: ExecutionContext, selector: str) -> int:
        root = await self._document(ctx)
        result = await ctx.send("DOM.querySelector", {"nodeId": root, "selector": selector})
        node_id = result.get("nodeId", 0)
        if not node_id:
            raise ElementNotFoundError(f"Element not found: {selector}")
        return node_id

    async def _describe(self, ctx: ExecutionContext, node_id: int) -> dict:
        result = await ctx.send("DOM.describeNode", {"nodeId": node_id})
        node = result.get("node", {})
        return {
            "nodeId": node_id,
            "backendNodeId": node.get("backendNodeId"),
            "nodeName": node.get("nodeName", "").lower(),
            "attributes": _attributes(node.get("attributes", [])),
            "childCount": node.get("childNodeCount", 0),
        }

    @tool("dom_query_selector", "Find the first element matching a selector", args=SelectorArgs)
    async def query_selector(self, args: SelectorArgs, ctx: ExecutionContext):
        node_id = await self._query(ctx, args.selector)
        return await self._describe(ctx, node_id)

    @tool("dom_query_selector_all", "Find all elements matching a selector", args=SelectorAllArgs)
    async def query_selector_all(self, args: SelectorAllArgs, ctx: ExecutionContext):
        root = await self._document(ctx)
        result = await ctx.send("DOM.querySelectorAll", {"nodeId": root, "selector": args.selector})
        node_ids = result.get("nodeIds", [])
        elements = [await self._describe(ctx, node_id) for node_id in node_ids[: args.limit]]
        return {"selector": args.selector, "count": len(node_ids), "elements": elements}

    @tool("dom_get_attributes", "Get all attributes of an element", args=SelectorArgs)
    async def get_attributes(self, args: SelectorArgs, ctx: ExecutionContext):
        node_id = await self._query(ctx, args.selector)
        result = await ctx.send("DOM.getAttributes", {"nodeId": node_id})
        return {"selector": args.selector, "attributes": _attributes(result.get("attributes", []))}

    @tool("dom_set_attribute", "Set an attribute on an element", args=SetAttributeArgs)
    async def set_attribute(self, args: SetAttributeArgs, ctx: ExecutionContext):
        node_id = await self._query(ctx, args.selector)
        await ctx.send("DOM.setAttributeValue", {"nodeId": node_id, "name": args.name, "value": args.value})
        return {"selector": args.selector, "name": args.name, "value": args.value}

    @tool("dom_remove_attribute", "Remove an attribute from an element", args=AttributeArgs)
    async def remove_attribute(self, args: AttributeArgs, ctx: ExecutionContext):
        node_id = await self._query(ctx, args.selector)
        await ctx.send("DOM.removeAttribute", {"nodeId": node_id, "name": args.name})
        return {"selector": args.selector, "removed": args.name}

    @tool("dom_get_outer_html", "Get the outer HTML of an element", args=SelectorArgs)
    async def get_outer_html(self, args: SelectorArgs, ctx: ExecutionContext):
        node_id = await self._query(ctx, args.selector)
        result = await ctx.send("DOM.getOuterHTML", {"nodeId": node_id})
        return {"selector": args.selector, "html": result.get("outerHTML", "")}

    @tool("dom_click", "Click the center of an element", args=SelectorArgs)
    async def click(self, args: SelectorArgs, ctx: ExecutionContext):
        node_id = await self._query(ctx, args.selector)

        await ctx.send("DOM.scrollIntoViewIfNeeded", {"nodeId": node_id})
        box = await ctx.send("DOM.getBoxModel", {"nodeId": node_id})
        quad = box.get("model", {}).get("content", [])
        if len(quad) < 8:
            return ToolResult.fail(f"Element has no layout box: {args.selector}")

        x = sum(quad[0::2]) / 4
        y = sum(quad[1::2]) / 4
        for event_type in ("mousePressed", "mouseReleased"):
            await ctx.send(
                "Input.dispatchMouseEvent",
                {"type": event_type, "x": x, "y": y, "button": "left", "clickCount": 1},
            )
        return {"selector": args.selector, "x": x, "y": y}

    @tool("dom_set_value", "Set the value of an input and fire input/change events", args=SetValueArgs)
    async def set_value(self, args: SetValueArgs, ctx: ExecutionContext):
        return await self.run_script(build_script(SET_VALUE, args.selector, args.value), ctx)

    @tool("dom_get_text", "Get the visible text of an element", args=SelectorArgs)
    async def get_text(self, args: SelectorArgs, ctx: ExecutionContext):
        return await self.run_script(build_script(GET_TEXT, args.selector), ctx)

    @tool("dom_wait_for_selector", "Wait until an element matching a selector exists", args=WaitArgs)
    async def wait_for_selector(self, args: WaitArgs, ctx: ExecutionContext):
        await ctx.client.enable_runtime(ctx.session_id)
        script = build_script(EXISTS, args.selector, args.visible)
        started = time.monotonic()
        deadline = started + args.timeout

        while True:
            if await ctx.client.evaluate_value(script, ctx.session_id):
                return {"selector": args.selector, "found": True, "elapsed": round(time.monotonic() - started, 3)}
            if time.monotonic() >= deadline:
                return ToolResult.fail(f"Timed out after {args.timeout}s waiting for {args.selector}")
            await asyncio.sleep(args.poll_interval)
