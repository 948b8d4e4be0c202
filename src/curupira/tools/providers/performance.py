"""Runtime performance metrics, JS heap usage and navigation timing."""

from pydantic import Field

from curupira.tools.base import ExecutionContext, SessionArgs, ToolProvider, build_script, tool

MEMORY = """() => {
  const memory = performance.memory;
  if (!memory) return { available: false, warnings: ['performance.memory is only exposed by Chromium'] };
  return {
    available: true,
    usedJSHeapSize: memory.usedJSHeapSize,
    totalJSHeapSize: memory.totalJSHeapSize,
    jsHeapSizeLimit: memory.jsHeapSizeLimit,
    usedPercent: Math.round(memory.usedJSHeapSize / memory.jsHeapSizeLimit * 10000) / 100,
  };
}"""

NAVIGATION_TIMING = """(resourceLimit) => {
  const nav = performance.getEntriesByType('navigation')[0];
  if (!nav) return { error: 'No navigation timing entry for this page' };
  const paints = {};
  for (const entry of performance.getEntriesByType('paint')) paints[entry.name] = Math.round(entry.startTime);
  const resources = performance.getEntriesByType('resource')
    .sort((a, b) => b.duration - a.duration)
    .slice(0, resourceLimit)
    .map(r => ({ name: r.name, type: r.initiatorType, duration: Math.round(r.duration), size: r.transferSize }));
  return {
    url: nav.name,
    type: nav.type,
    dns: Math.round(nav.domainLookupEnd - nav.domainLookupStart),
    tcp: Math.round(nav.connectEnd - nav.connectStart),
    ttfb: Math.round(nav.responseStart - nav.requestStart),
    response: Math.round(nav.responseEnd - nav.responseStart),
    domInteractive: Math.round(nav.domInteractive),
    domContentLoaded: Math.round(nav.domContentLoadedEventEnd),
    load: Math.round(nav.loadEventEnd),
    transferSize: nav.transferSize,
    paint: paints,
    slowestResources: resources,
  };
}"""


class TimingArgs(SessionArgs):
    resource_limit: int = Field(default=10, ge=0, le=100, description="Slowest resources to include")


class PerformanceProvider(ToolProvider):
    name = "performance"

    @tool("performance_get_metrics", "Get Chrome runtime performance metrics", error_prefix="Failed to get metrics")
    async def get_metrics(self, args: SessionArgs, ctx: ExecutionContext):
        await ctx.ensure_domain("Performance")
        result = await ctx.send("Performance.getMetrics")
        return {"metrics": {m["name"]: m["value"] for m in result.get("metrics", [])}}

    @tool("performance_memory", "Get JavaScript heap usage")
    async def memory(self, args: SessionArgs, ctx: ExecutionContext):
        return await self.run_script(build_script(MEMORY), ctx)

    @tool("performance_navigation_timing", "Get navigation, paint and slowest resource timings", args=TimingArgs)
    async def navigation_timing(self, args: TimingArgs, ctx: ExecutionContext):
        return await self.run_script(build_script(NAVIGATION_TIMING, args.resource_limit), ctx)
