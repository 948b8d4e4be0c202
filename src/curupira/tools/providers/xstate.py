"""XState actor and machine inspection.

Scripts read the registry exposed by the XState inspector
(``window.__xstate__.actors``, a Map of actor id to actor).
"""

from typing import Any

from pydantic import Field

from curupira.tools.base import ExecutionContext, SessionArgs, ToolProvider, build_script, tool

DETECT = """() => {
  const registry = window.__xstate__;
  if (!registry) return { available: false };
  return {
    available: true,
    version: registry.version || null,
    actorCount: registry.actors ? registry.actors.size : 0
  };
}"""

LIST_MACHINES = """() => {
  const registry = window.__xstate__;
  if (!registry) return { available: false };
  if (!registry.actors) return { error: 'XState actors not found. Make sure XState devtools is enabled.' };
  const machines = [];
  registry.actors.forEach((actor, id) => {
    const snapshot = actor.getSnapshot ? actor.getSnapshot() : {};
    machines.push({
      actorId: id,
      machineId: actor.machine ? actor.machine.id : null,
      state: snapshot.value,
      status: snapshot.status || null
    });
  });
  return { machines };
}"""

INSPECT_ACTOR = """(actorId) => {
  const registry = window.__xstate__;
  if (!registry || !registry.actors) {
    return { error: 'XState actors not found. Make sure XState devtools is enabled.' };
  }
  const actor = registry.actors.get(actorId);
  if (!actor) {
    return { error: 'Actor not found', availableActors: Array.from(registry.actors.keys()) };
  }
  const snapshot = actor.getSnapshot();
  return {
    actorId,
    state: {
      value: snapshot.value,
      context: snapshot.context,
      status: snapshot.status,
      tags: Array.from(snapshot.tags || []),
      done: snapshot.status === 'done'
    },
    machine: {
      id: actor.machine ? actor.machine.id : null,
      states: actor.machine && actor.machine.states ? Object.keys(actor.machine.states) : []
    }
  };
}"""

SEND_EVENT = """(actorId, event) => {
  const registry = window.__xstate__;
  if (!registry || !registry.actors) return { error: 'XState actors not found' };
  const actor = registry.actors.get(actorId);
  if (!actor) {
    return { error: 'Actor not found', availableActors: Array.from(registry.actors.keys()) };
  }
  const before = actor.getSnapshot();
  actor.send(event);
  const after = actor.getSnapshot();
  return {
    event,
    previousState: { value: before.value, context: before.context },
    newState: { value: after.value, context: after.context, status: after.status },
    changed: JSON.stringify(before.value) !== JSON.stringify(after.value)
  };
}"""


class ActorArgs(SessionArgs):
    actor_id: str = Field(description="Actor ID")


class SendEventArgs(ActorArgs):
    event: dict[str, Any] = Field(description="Event object, e.g. {\"type\": \"SUBMIT\"}")


class XStateProvider(ToolProvider):
    name = "xstate"
    library = "XState"

    @tool("xstate_detect", "Detect XState inspector and count live actors")
    async def detect(self, args: SessionArgs, ctx: ExecutionContext):
        return await self.run_script(build_script(DETECT), ctx)

    @tool(
        "xstate_list_machines",
        "List running XState actors and their machines",
        error_prefix="Error listing machines",
    )
    async def list_machines(self, args: SessionArgs, ctx: ExecutionContext):
        return await self.run_script(build_script(LIST_MACHINES), ctx)

    @tool("xstate_inspect_actor", "Inspect XState actor state", args=ActorArgs, error_prefix="Error inspecting actor")
    async def inspect_actor(self, args: ActorArgs, ctx: ExecutionContext):
        return await self.run_script(build_script(INSPECT_ACTOR, args.actor_id), ctx)

    @tool("xstate_send_event", "Send event to XState actor", args=SendEventArgs, error_prefix="Error sending event")
    async def send_event(self, args: SendEventArgs, ctx: ExecutionContext):
        return await self.run_script(build_script(SEND_EVENT, args.actor_id, args.event), ctx)
