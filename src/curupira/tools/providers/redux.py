"""Redux store inspection and action dispatch.

The store is looked up on the common globals (``window.store``,
``window.__store__``, ``window.__REDUX_STORE__``). Action history is
recorded by wrapping ``store.dispatch`` the first time it is requested.
"""

from typing import Any

from pydantic import Field

from curupira.tools.base import ExecutionContext, SessionArgs, ToolProvider, ToolResult, build_script, tool

FIND_STORE = """const findStore = () => {
    const candidates = [window.store, window.__store__, window.__REDUX_STORE__];
    return candidates.find((s) => s && typeof s.getState === 'function') || null;
  };"""

NOT_FOUND = "Redux store not found. Make sure Redux DevTools is enabled or store is exposed."

DETECT = f"""() => {{
  {FIND_STORE}
  const store = findStore();
  return {{
    available: !!store,
    devtools: !!window.__REDUX_DEVTOOLS_EXTENSION__,
    stateKeys: store ? Object.keys(store.getState() || {{}}) : []
  }};
}}"""

INSPECT_STATE = f"""(path) => {{
  {FIND_STORE}
  const store = findStore();
  if (!store) return {{ error: {NOT_FOUND!r} }};
  const state = store.getState();
  if (!path) return {{ state, stateKeys: Object.keys(state || {{}}) }};
  let value = state;
  for (const part of path.split('.')) {{
    if (value && typeof value === 'object' && part in value) {{
      value = value[part];
    }} else {{
      return {{
        error: 'Path not found: ' + path,
        availableKeys: value && typeof value === 'object' ? Object.keys(value) : []
      }};
    }}
  }}
  return {{ path, value, type: typeof value }};
}}"""

DISPATCH = f"""(action) => {{
  {FIND_STORE}
  const store = findStore();
  if (!store || typeof store.dispatch !== 'function') {{
    return {{ error: 'Redux store not found or dispatch not available' }};
  }}
  const before = store.getState();
  store.dispatch(action);
  const after = store.getState();
  const changedKeys = Object.keys(after || {{}}).filter((k) => before[k] !== after[k]);
  return {{ action, changedKeys, state: after }};
}}"""

GET_ACTIONS = f"""(limit) => {{
  {FIND_STORE}
  const store = findStore();
  if (!store) return {{ error: {NOT_FOUND!r} }};
  const warnings = [];
  if (!window.__CURUPIRA_REDUX_ACTIONS__) {{
    const log = [];
    const dispatch = store.dispatch;
    store.dispatch = (action) => {{
      log.push({{ type: action && action.type, action, timestamp: Date.now() }});
      if (log.length > 500) log.shift();
      return dispatch(action);
    }};
    window.__CURUPIRA_REDUX_ACTIONS__ = log;
    warnings.push('Action recording started; only actions dispatched from now on are captured');
  }}
  const log = window.__CURUPIRA_REDUX_ACTIONS__;
  return {{ actions: log.slice(-limit), total: log.length, warnings }};
}}"""


class InspectStateArgs(SessionArgs):
    path: str | None = Field(default=None, description="Dot-separated path into the state, e.g. 'user.profile'")


class DispatchArgs(SessionArgs):
    action: dict[str, Any] = Field(description="Action object with a 'type' field")


class GetActionsArgs(SessionArgs):
    limit: int = Field(default=10, ge=1, le=500, description="Maximum number of actions to return")


class ReduxProvider(ToolProvider):
    name = "redux"
    library = "Redux"

    @tool("redux_detect", "Detect a Redux store exposed on the page")
    async def detect(self, args: SessionArgs, ctx: ExecutionContext):
        return await self.run_script(build_script(DETECT), ctx)

    @tool(
        "redux_inspect_state",
        "Inspect Redux store state",
        args=InspectStateArgs,
        error_prefix="Error inspecting state",
    )
    async def inspect_state(self, args: InspectStateArgs, ctx: ExecutionContext):
        return await self.run_script(build_script(INSPECT_STATE, args.path), ctx)

    @tool("redux_dispatch_action", "Dispatch Redux action", args=DispatchArgs, error_prefix="Error dispatching action")
    async def dispatch_action(self, args: DispatchArgs, ctx: ExecutionContext):
        if not isinstance(args.action.get("type"), str):
            return ToolResult.fail("Redux action must have a string 'type'")
        return await self.run_script(build_script(DISPATCH, args.action), ctx)

    @tool("redux_get_actions", "Get recorded Redux actions", args=GetActionsArgs, error_prefix="Error getting actions")
    async def get_actions(self, args: GetActionsArgs, ctx: ExecutionContext):
        return await self.run_script(build_script(GET_ACTIONS, args.limit), ctx)
