"""Web storage, IndexedDB and origin quota inspection."""

from pydantic import Field

from curupira.tools.base import ExecutionContext, SessionArgs, ToolProvider, ToolResult, build_script, tool

READ_STORAGE = """(area, key) => {
  let storage;
  try {
    storage = window[area];
  } catch (e) {
    return { error: `${area} is not accessible: ${e.message}` };
  }
  if (!storage) return { error: `${area} is not available on this page` };
  if (key !== null) {
    const value = storage.getItem(key);
    return { key, value, found: value !== null };
  }
  const entries = {};
  for (let i = 0; i < storage.length; i++) {
    const name = storage.key(i);
    entries[name] = storage.getItem(name);
  }
  return { entries, count: storage.length, size: JSON.stringify(entries).length };
}"""

INDEXEDDB_INFO = """async () => {
  if (!window.indexedDB) return { available: false, databases: [], warnings: ['IndexedDB is not available'] };
  if (!indexedDB.databases) {
    return { available: true, databases: [], warnings: ['indexedDB.databases() is not supported'] };
  }
  const databases = await indexedDB.databases();
  return { available: true, databases: databases.map(db => ({ name: db.name, version: db.version })) };
}"""

ORIGIN = "location.origin"


class StorageKeyArgs(SessionArgs):
    key: str | None = Field(default=None, description="Single key to read; all entries when omitted")


class StorageProvider(ToolProvider):
    name = "storage"

    @tool("get_local_storage", "Get all localStorage entries or one key", args=StorageKeyArgs)
    async def get_local_storage(self, args: StorageKeyArgs, ctx: ExecutionContext):
        return await self.run_script(build_script(READ_STORAGE, "localStorage", args.key), ctx)

    @tool("get_session_storage", "Get all sessionStorage entries or one key", args=StorageKeyArgs)
    async def get_session_storage(self, args: StorageKeyArgs, ctx: ExecutionContext):
        return await self.run_script(build_script(READ_STORAGE, "sessionStorage", args.key), ctx)

    @tool("get_indexeddb_info", "List IndexedDB databases of the page origin")
    async def get_indexeddb_info(self, args: SessionArgs, ctx: ExecutionContext):
        return await self.run_script(build_script(INDEXEDDB_INFO), ctx)

    @tool(
        "get_storage_usage",
        "Get storage usage and quota for the page origin",
        error_prefix="Failed to get storage usage",
    )
    async def get_storage_usage(self, args: SessionArgs, ctx: ExecutionContext):
        await ctx.client.enable_runtime(ctx.session_id)
        origin = await ctx.client.evaluate_value(ORIGIN, ctx.session_id)
        if not origin or origin == "null":
            return ToolResult.fail(f"Page has no storage origin: {origin}")

        result = await ctx.send("Storage.getUsageAndQuota", {"origin": origin})
        usage, quota = result.get("usage", 0), result.get("quota", 0)
        return {
            "origin": origin,
            "usage": usage,
            "quota": quota,
            "percentUsed": round(usage / quota * 100, 2) if quota else 0,
            "breakdown": {
                b["storageType"]: b["usage"] for b in result.get("usageBreakdown", []) if b.get("usage")
            },
        }
