"""Apollo Client cache and query inspection via ``window.__APOLLO_CLIENT__``."""

from pydantic import Field

from curupira.tools.base import ExecutionContext, SessionArgs, ToolProvider, build_script, tool

DETECT = """() => {
  const client = window.__APOLLO_CLIENT__;
  if (!client) return { available: false };
  const cache = client.cache && client.cache.extract ? client.cache.extract() : {};
  return {
    available: true,
    version: client.version || null,
    cacheSize: Object.keys(cache).length,
    activeQueries: client.getObservableQueries ? client.getObservableQueries().size : null
  };
}"""

CACHE_INSPECT = """(rootId) => {
  const client = window.__APOLLO_CLIENT__;
  if (!client) return { available: false };
  const cache = client.cache.extract();
  if (rootId) {
    if (!(rootId in cache)) {
      return { error: 'Cache entry not found: ' + rootId, availableIds: Object.keys(cache).slice(0, 50) };
    }
    return { id: rootId, entry: cache[rootId] };
  }
  return {
    cacheSize: Object.keys(cache).length,
    rootQuery: cache.ROOT_QUERY || {},
    rootMutation: cache.ROOT_MUTATION || {},
    cache
  };
}"""

QUERY_INSPECT = """() => {
  const client = window.__APOLLO_CLIENT__;
  if (!client) return { available: false };
  if (!client.getObservableQueries) return { error: 'Apollo Client does not expose observable queries' };
  const queries = [];
  client.getObservableQueries('all').forEach((observable, queryId) => {
    const current = observable.getCurrentResult ? observable.getCurrentResult() : {};
    queries.push({
      queryId,
      operationName: observable.queryName || null,
      variables: observable.variables || {},
      loading: !!current.loading,
      networkStatus: current.networkStatus,
      error: current.error ? String(current.error.message || current.error) : null
    });
  });
  return { queries };
}"""

REFETCH = """async (operationName) => {
  const client = window.__APOLLO_CLIENT__;
  if (!client) return { available: false };
  if (!client.refetchQueries) return { error: 'Apollo Client does not support refetchQueries' };
  const include = operationName ? [operationName] : 'active';
  const results = await client.refetchQueries({ include });
  return { refetched: results.length, include };
}"""

CLEAR_CACHE = """async () => {
  const client = window.__APOLLO_CLIENT__;
  if (!client) return { available: false };
  const before = Object.keys(client.cache.extract()).length;
  await client.clearStore();
  return { cleared: true, entriesRemoved: before };
}"""


class CacheArgs(SessionArgs):
    entry_id: str | None = Field(
        default=None, description="Normalized cache id, e.g. 'User:1'. Whole cache when omitted"
    )


class RefetchArgs(SessionArgs):
    operation_name: str | None = Field(
        default=None, description="Query operation name. All active queries when omitted"
    )


class ApolloProvider(ToolProvider):
    name = "apollo"
    library = "Apollo Client"

    @tool("apollo_detect", "Detect Apollo Client on the page")
    async def detect(self, args: SessionArgs, ctx: ExecutionContext):
        return await self.run_script(build_script(DETECT), ctx)

    @tool("apollo_cache_inspect", "Inspect Apollo Client cache", args=CacheArgs, error_prefix="Error inspecting cache")
    async def cache_inspect(self, args: CacheArgs, ctx: ExecutionContext):
        return await self.run_script(build_script(CACHE_INSPECT, args.entry_id), ctx)

    @tool(
        "apollo_query_inspect",
        "List watched Apollo queries and their state",
        error_prefix="Error inspecting queries",
    )
    async def query_inspect(self, args: SessionArgs, ctx: ExecutionContext):
        return await self.run_script(build_script(QUERY_INSPECT), ctx)

    @tool("apollo_refetch_query", "Refetch Apollo queries", args=RefetchArgs, error_prefix="Error refetching query")
    async def refetch_query(self, args: RefetchArgs, ctx: ExecutionContext):
        return await self.run_script(build_script(REFETCH, args.operation_name), ctx)

    @tool("apollo_clear_cache", "Clear Apollo Client cache", error_prefix="Error clearing cache")
    async def clear_cache(self, args: SessionArgs, ctx: ExecutionContext):
        return await self.run_script(build_script(CLEAR_CACHE), ctx)
