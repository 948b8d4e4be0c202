"""Zustand store inspection.

Stores are expected in ``window.__ZUSTAND_STORES__`` (Map of name to store),
which the zustand devtools middleware registers.
"""

from typing import Any

from pydantic import Field

from curupira.tools.base import ExecutionContext, SessionArgs, ToolProvider, build_script, tool

DETECT = """() => {
  const stores = window.__ZUSTAND_STORES__;
  if (!stores) return { available: false };
  return { available: true, storeCount: stores.size };
}"""

LIST_STORES = """() => {
  const stores = window.__ZUSTAND_STORES__;
  if (!stores) return { available: false };
  const result = [];
  stores.forEach((store, name) => {
    const state = store.getState();
    result.push({ name, keys: Object.keys(state || {}) });
  });
  return { stores: result };
}"""

INSPECT_STORE = """(storeName) => {
  const stores = window.__ZUSTAND_STORES__;
  if (!stores) return { error: 'Zustand stores not found. Make sure Zustand devtools is enabled.' };
  const store = stores.get(storeName);
  if (!store) return { error: 'Store not found', availableStores: Array.from(stores.keys()) };
  const state = store.getState();
  const plain = {};
  const actions = [];
  for (const [key, value] of Object.entries(state || {})) {
    if (typeof value === 'function') actions.push(key);
    else plain[key] = value;
  }
  return { storeName, state: plain, actions };
}"""

SET_STATE = """(storeName, partial, replace) => {
  const stores = window.__ZUSTAND_STORES__;
  if (!stores) return { error: 'Zustand stores not found' };
  const store = stores.get(storeName);
  if (!store) return { error: 'Store not found', availableStores: Array.from(stores.keys()) };
  const previous = store.getState();
  store.setState(partial, replace);
  const current = store.getState();
  const strip = (s) => Object.fromEntries(Object.entries(s || {}).filter(([, v]) => typeof v !== 'function'));
  return { storeName, previousState: strip(previous), newState: strip(current) };
}"""


class StoreArgs(SessionArgs):
    store_name: str = Field(description="Store name")


class SetStateArgs(StoreArgs):
    state: dict[str, Any] = Field(description="Partial state to merge")
    replace: bool = Field(default=False, description="Replace the whole state instead of merging")


class ZustandProvider(ToolProvider):
    name = "zustand"
    library = "Zustand"

    @tool("zustand_detect", "Detect Zustand stores registered by devtools")
    async def detect(self, args: SessionArgs, ctx: ExecutionContext):
        return await self.run_script(build_script(DETECT), ctx)

    @tool("zustand_list_stores", "List all Zustand stores", error_prefix="Error listing stores")
    async def list_stores(self, args: SessionArgs, ctx: ExecutionContext):
        return await self.run_script(build_script(LIST_STORES), ctx)

    @tool("zustand_inspect_store", "Inspect Zustand store state", args=StoreArgs, error_prefix="Error inspecting store")
    async def inspect_store(self, args: StoreArgs, ctx: ExecutionContext):
        return await self.run_script(build_script(INSPECT_STORE, args.store_name), ctx)

    @tool(
        "zustand_set_state",
        "Merge state into a Zustand store",
        args=SetStateArgs,
        error_prefix="Error setting state",
    )
    async def set_state(self, args: SetStateArgs, ctx: ExecutionContext):
        return await self.run_script(build_script(SET_STATE, args.store_name, args.state, args.replace), ctx)
