"""React fiber inspection through the DevTools global hook.

Component ids handed out by find/tree calls index into
``window.__CURUPIRA_REACT_FIBERS__`` so later calls can find the fiber again.
"""

from pydantic import Field

from curupira.tools.base import ExecutionContext, SessionArgs, ToolProvider, build_script, tool

PRELUDE = """const hook = window.__REACT_DEVTOOLS_GLOBAL_HOOK__;
  const roots = () => {
    const found = [];
    if (hook && hook.getFiberRoots) {
      for (const id of (hook.renderers ? hook.renderers.keys() : [])) {
        hook.getFiberRoots(id).forEach((root) => found.push(root.current));
      }
    }
    if (!found.length) {
      for (const el of document.querySelectorAll('*')) {
        const key = Object.keys(el).find((k) => k.startsWith('__reactContainer$') || k.startsWith('__reactFiber$'));
        if (key) { let f = el[key]; while (f && f.return) f = f.return; if (f) found.push(f); break; }
      }
    }
    return found;
  };
  const nameOf = (fiber) => {
    const t = fiber.type;
    if (!t) return null;
    if (typeof t === 'string') return t;
    return t.displayName || t.name || (t.render && (t.render.displayName || t.render.name)) || null;
  };
  const registry = (window.__CURUPIRA_REACT_FIBERS__ = window.__CURUPIRA_REACT_FIBERS__ || new Map());
  const idOf = (fiber) => {
    for (const [id, f] of registry) if (f === fiber || f === fiber.alternate) return id;
    const id = 'rc-' + (registry.size + 1);
    registry.set(id, fiber);
    return id;
  };
  const safe = (value, depth = 0) => {
    if (value === null || typeof value !== 'object') return typeof value === 'function' ? '[Function]' : value;
    if (depth > 3) return '[Object]';
    if (Array.isArray(value)) return value.slice(0, 20).map((v) => safe(v, depth + 1));
    if (value.$$typeof) return '[ReactElement]';
    const out = {};
    for (const k of Object.keys(value).slice(0, 50)) out[k] = safe(value[k], depth + 1);
    return out;
  };"""

DETECT = f"""() => {{
  {PRELUDE}
  const renderers = hook && hook.renderers ? Array.from(hook.renderers.values()) : [];
  const version = renderers.length ? renderers[0].version : (window.React && window.React.version) || null;
  const available = !!hook || !!window.React || roots().length > 0;
  return {{ available, version, devtoolsHook: !!hook, rendererCount: renderers.length, roots: roots().length }};
}}"""

COMPONENT_TREE = f"""(maxDepth) => {{
  {PRELUDE}
  const rootFibers = roots();
  if (!rootFibers.length) return {{ available: false }};
  const walk = (fiber, depth) => {{
    const nodes = [];
    for (let child = fiber; child; child = child.sibling) {{
      const name = nameOf(child);
      if (name && typeof child.type !== 'string') {{
        const node = {{ id: idOf(child), name }};
        if (depth < maxDepth && child.child) node.children = walk(child.child, depth + 1);
        nodes.push(node);
      }} else if (child.child) {{
        nodes.push(...walk(child.child, depth));
      }}
    }}
    return nodes;
  }};
  return {{ tree: rootFibers.flatMap((root) => walk(root.child, 0)) }};
}}"""

FIND_COMPONENT = f"""(componentName, limit) => {{
  {PRELUDE}
  const rootFibers = roots();
  if (!rootFibers.length) return {{ available: false }};
  const matches = [];
  const stack = [...rootFibers];
  while (stack.length && matches.length < limit) {{
    const fiber = stack.pop();
    if (nameOf(fiber) === componentName) {{
      matches.push({{ id: idOf(fiber), name: componentName, props: safe(fiber.memoizedProps) }});
    }}
    if (fiber.sibling) stack.push(fiber.sibling);
    if (fiber.child) stack.push(fiber.child);
  }}
  return {{ componentName, count: matches.length, components: matches }};
}}"""

INSPECT_HOOKS = f"""(componentId) => {{
  {PRELUDE}
  const fiber = registry.get(componentId);
  if (!fiber) return {{ error: 'Component not found: ' + componentId + '. Use react_find_component first.' }};
  const hooks = [];
  let state = fiber.memoizedState;
  let index = 0;
  while (state && index < 100) {{
    const queue = state.queue;
    let kind = 'unknown';
    const memo = state.memoizedState;
    if (queue && typeof queue.dispatch === 'function') {{
      const reducer = queue.lastRenderedReducer;
      kind = reducer && reducer.name === 'basicStateReducer' ? 'useState' : 'useReducer';
    }} else if (memo && memo.create) kind = 'useEffect';
    else if (memo && typeof memo === 'object' && 'current' in memo) kind = 'useRef';
    else if (Array.isArray(memo) && memo.length === 2) kind = 'useMemo';
    hooks.push({{ index, kind, value: safe(kind === 'useEffect' ? null : state.memoizedState) }});
    state = state.next;
    index++;
  }}
  return {{ componentId, name: nameOf(fiber), hooks, props: safe(fiber.memoizedProps) }};
}}"""


class TreeArgs(SessionArgs):
    max_depth: int = Field(default=10, ge=1, le=50, description="Maximum component depth")


class FindComponentArgs(SessionArgs):
    component_name: str = Field(description="Component display name")
    limit: int = Field(default=20, ge=1, le=200, description="Maximum matches to return")


class ComponentArgs(SessionArgs):
    component_id: str = Field(description="Component ID from react_find_component or react_get_component_tree")


class ReactProvider(ToolProvider):
    name = "react"
    library = "React"

    @tool("react_detect_version", "Detect React version and dev tools availability")
    async def detect_version(self, args: SessionArgs, ctx: ExecutionContext):
        return await self.run_script(build_script(DETECT), ctx)

    @tool(
        "react_get_component_tree",
        "Get React component tree",
        args=TreeArgs,
        error_prefix="Error reading component tree",
    )
    async def component_tree(self, args: TreeArgs, ctx: ExecutionContext):
        return await self.run_script(build_script(COMPONENT_TREE, args.max_depth), ctx)

    @tool(
        "react_find_component",
        "Find React component by name",
        args=FindComponentArgs,
        error_prefix="Error finding component",
    )
    async def find_component(self, args: FindComponentArgs, ctx: ExecutionContext):
        return await self.run_script(build_script(FIND_COMPONENT, args.component_name, args.limit), ctx)

    @tool(
        "react_inspect_hooks",
        "Inspect React component hooks",
        args=ComponentArgs,
        error_prefix="Error inspecting hooks",
    )
    async def inspect_hooks(self, args: ComponentArgs, ctx: ExecutionContext):
        return await self.run_script(build_script(INSPECT_HOOKS, args.component_id), ctx)
