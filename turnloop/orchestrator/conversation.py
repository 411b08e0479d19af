from __future__ import annotations

import asyncio
import contextlib
from typing import Any, Callable, Iterable

from langgraph.errors import GraphRecursionError
from langgraph.graph import END, START, StateGraph

from turnloop.core.cancel import CancelToken
from turnloop.core.clock import utc_today
from turnloop.core.errors import (
    GenerationCancelled,
    OrchestratorBusyError,
    TransportError,
    UnknownInvocationError,
)
from turnloop.core.types import ToolInvocation, ToolOutcome, Turn
from turnloop.llm.backend import BackendRequest, ModelBackend
from turnloop.llm.events import TextDelta, ToolCallFragment, TurnComplete
from turnloop.llm.messages import system_prompt_with_date
from turnloop.llm.sse import parse_stream
from turnloop.llm.tool_call_accumulator import ToolCallAccumulator
from turnloop.metering import UsageMeter
from turnloop.observability import add_error, bind_context, get_logger, new_session_id, new_trace_id, set_state
from turnloop.tools.gateway import ToolGateway

from .sink import LoggingSink, Sink
from .state import CycleState, TurnState

TextDeltaCallback = Callable[[str, str], None]
StateChangeCallback = Callable[[TurnState], None]


class Orchestrator:
    """Turn-taking state machine for one conversation.

    One generation cycle is a LangGraph loop of two nodes:

        START -> generate -> END                 (plain answer)
        START -> generate -> execute -> generate (auto-approved tools)
        START -> execute -> ...                  (resuming after confirm)

    `execute` ends the cycle while confirmations are pending, so the model
    is only called again once every invocation of its last turn has an
    outcome. The graph recursion limit bounds long tool chains.
    """

    def __init__(
        self,
        *,
        backend: ModelBackend,
        gateway: ToolGateway,
        system_prompt: str,
        sink: Sink | None = None,
        meter: UsageMeter | None = None,
        max_steps: int = 50,
        on_text_delta: TextDeltaCallback | None = None,
        on_state_change: StateChangeCallback | None = None,
    ) -> None:
        self._backend = backend
        self._gateway = gateway
        self._system_prompt = system_prompt
        self._sink: Sink = sink or LoggingSink()
        self._meter = meter
        self._max_steps = max_steps
        self._on_text_delta = on_text_delta
        self._on_state_change = on_state_change

        self._turns: list[Turn] = []
        self._streaming_text = ""
        self._pending: list[ToolInvocation] = []
        # Invocation turns of this cycle that have no outcome turn yet.
        self._unresolved: list[ToolInvocation] = []
        self._state = TurnState.IDLE
        self._last_error: TransportError | None = None

        self._task: asyncio.Task[None] | None = None
        self._token: CancelToken | None = None

        self._session_id = new_session_id()
        self._turn_no = 0
        self._log = get_logger("turnloop.orchestrator")
        self._graph = self._build_graph()

    # Observables

    @property
    def turns(self) -> tuple[Turn, ...]:
        return tuple(self._turns)

    @property
    def streaming_text(self) -> str:
        return self._streaming_text

    @property
    def pending(self) -> tuple[ToolInvocation, ...]:
        return tuple(self._pending)

    @property
    def state(self) -> TurnState:
        return self._state

    @property
    def last_error(self) -> TransportError | None:
        return self._last_error

    @property
    def busy(self) -> bool:
        return self._task is not None

    # Inbound API

    async def start_turn(self, user_text: str) -> None:
        """Append a user turn and generate until idle or awaiting confirmation.

        Pending confirmations from an earlier turn are rejected first.

        Raises:
            ValueError: blank input.
            OrchestratorBusyError: a generation is already in flight.
            TransportError: the backend failed; partial text is salvaged.
        """

        if not user_text.strip():
            raise ValueError("user_text must not be blank")
        self._ensure_not_busy()

        if self._pending:
            for invocation in list(self._pending):
                self._reject_pending(invocation)

        self._turn_no += 1
        bind_context(trace_id=new_trace_id(), session_id=self._session_id, turn_id=self._turn_no)
        self._last_error = None
        self._append(Turn.user(user_text))
        await self._run([])

    async def confirm(self, invocation_id: str) -> None:
        """Run a pending invocation; generation resumes once none are pending."""

        self._ensure_not_busy()
        invocation = self._take_pending(invocation_id)
        await self._run([invocation])

    async def reject(self, invocation_id: str) -> None:
        """Answer a pending invocation with a rejection outcome."""

        self._ensure_not_busy()
        invocation = self._take_pending(invocation_id)
        self._reject_pending(invocation)
        if not self._pending:
            await self._run([])

    def cancel(self) -> None:
        """Stop the in-flight generation or tool call. No-op when nothing runs."""

        if self._task is None or self._token is None:
            return
        self._token.cancel("cancelled by caller")
        self._task.cancel()

    async def new_conversation(self) -> None:
        await self._drain()
        self._reset([])

    async def load(self, turns: Iterable[Turn]) -> None:
        await self._drain()
        self._reset(list(turns))

    def dismiss_error(self) -> None:
        self._last_error = None

    # Internals

    def _ensure_not_busy(self) -> None:
        if self._task is not None:
            raise OrchestratorBusyError("a generation is already in flight")

    def _take_pending(self, invocation_id: str) -> ToolInvocation:
        for i, invocation in enumerate(self._pending):
            if invocation.id == invocation_id:
                return self._pending.pop(i)
        raise UnknownInvocationError(invocation_id)

    def _reject_pending(self, invocation: ToolInvocation) -> None:
        with contextlib.suppress(ValueError):
            self._pending.remove(invocation)
        self._log.info("tool_rejected", tool_call_id=invocation.id, tool=invocation.name)
        self._resolve(ToolOutcome.rejected(invocation.id))

    def _resolve(self, outcome: ToolOutcome) -> None:
        self._unresolved = [inv for inv in self._unresolved if inv.id != outcome.invocation_id]
        self._append(Turn.for_outcome(outcome))

    def _append(self, turn: Turn) -> None:
        self._turns.append(turn)
        self._sink.on_turns_changed(tuple(self._turns))

    def _set_state(self, state: TurnState) -> None:
        if state is self._state:
            return
        self._state = state
        set_state(state.value)
        if self._on_state_change is not None:
            self._on_state_change(state)

    def _reset(self, turns: list[Turn]) -> None:
        self._turns = turns
        self._streaming_text = ""
        self._pending = []
        self._unresolved = []
        self._last_error = None
        self._set_state(TurnState.IDLE)
        self._sink.on_turns_changed(tuple(self._turns))

    async def _drain(self) -> None:
        task = self._task
        if task is None:
            return
        self.cancel()
        with contextlib.suppress(asyncio.CancelledError, TransportError):
            await task

    def _requires_confirmation(self, invocation: ToolInvocation) -> bool:
        descriptor = self._gateway.catalog.resolve(invocation.name)
        return descriptor is not None and descriptor.confirmation_required

    def _record_usage(self, event: TurnComplete) -> None:
        if event.usage is None or self._meter is None:
            return
        try:
            self._meter.record(event.usage)
        except Exception:  # noqa: BLE001
            self._log.exception("usage_record_failed")

    def _salvage(self) -> None:
        text = self._streaming_text
        self._streaming_text = ""
        if text:
            self._append(Turn.assistant(text))

    def _abandon(self, *, cancelled: bool = False) -> None:
        """Close out an interrupted cycle so every invocation has an outcome."""

        for invocation in list(self._unresolved):
            self._resolve(ToolOutcome.cancelled(invocation.id))
        self._pending = []
        self._salvage()
        if cancelled:
            self._set_state(TurnState.CANCELLED)
        self._set_state(TurnState.IDLE)

    async def _generate(self, token: CancelToken) -> list[ToolInvocation]:
        self._set_state(TurnState.GENERATING)
        self._streaming_text = ""
        acc = ToolCallAccumulator()

        policy = self._gateway.policy
        request = BackendRequest(
            turns=tuple(self._turns),
            system_prompt=system_prompt_with_date(self._system_prompt, utc_today()),
            tools=self._gateway.catalog.openai_specs(permits=policy.permits if policy is not None else None),
        )

        complete: TurnComplete | None = None
        async with self._backend.open_stream(request) as response:
            async for event in parse_stream(response, cancel=token, default_model=self._backend.model):
                if isinstance(event, TextDelta):
                    self._streaming_text += event.text
                    if self._on_text_delta is not None:
                        self._on_text_delta(event.text, self._streaming_text)
                elif isinstance(event, ToolCallFragment):
                    acc.add(event)
                elif isinstance(event, TurnComplete):
                    complete = event

        if complete is not None:
            self._record_usage(complete)

        invocations = acc.finalize()
        text = self._streaming_text
        self._streaming_text = ""
        if text:
            self._append(Turn.assistant(text))
        for invocation in invocations:
            self._unresolved.append(invocation)
            self._append(Turn.for_invocation(invocation))

        self._log.info(
            "generation_done",
            text_len=len(text),
            tool_calls=len(invocations),
            finish_reason=complete.finish_reason if complete is not None else None,
            total_tokens=complete.usage.total_tokens if complete is not None and complete.usage else None,
        )
        return invocations

    def _build_graph(self) -> Any:
        async def generate_node(state: CycleState) -> dict[str, Any]:
            token = self._token
            assert token is not None
            ready: list[ToolInvocation] = []
            for invocation in await self._generate(token):
                if self._requires_confirmation(invocation):
                    self._pending.append(invocation)
                else:
                    ready.append(invocation)
            return {"ready": ready}

        async def execute_node(state: CycleState) -> dict[str, Any]:
            token = self._token
            assert token is not None
            self._set_state(TurnState.EXECUTING_TOOL)
            for invocation in state.get("ready", []):
                token.raise_if_cancelled()
                outcome = await self._gateway.execute(invocation)
                self._resolve(outcome)
            return {"ready": []}

        def route_start(state: CycleState) -> str:
            return "execute" if state.get("ready") else "generate"

        def route_generate(state: CycleState) -> str:
            return "execute" if state.get("ready") else END

        def route_execute(state: CycleState) -> str:
            return END if self._pending else "generate"

        builder = StateGraph(CycleState)
        builder.add_node("generate", generate_node)
        builder.add_node("execute", execute_node)

        builder.add_conditional_edges(START, route_start, ["generate", "execute"])
        builder.add_conditional_edges("generate", route_generate, ["execute", END])
        builder.add_conditional_edges("execute", route_execute, ["generate", END])

        return builder.compile()

    async def _run(self, ready: list[ToolInvocation]) -> None:
        token = CancelToken()
        self._token = token
        task = asyncio.create_task(self._cycle(ready, token))
        self._task = task
        try:
            await task
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise
            # Cancelled before the cycle got to run.
            self._abandon(cancelled=True)
        finally:
            self._task = None
            self._token = None

    async def _cycle(self, ready: list[ToolInvocation], token: CancelToken) -> None:
        try:
            await self._graph.ainvoke({"ready": ready}, config={"recursion_limit": self._max_steps})
        except GraphRecursionError:
            self._log.warning("step_limit_reached", max_steps=self._max_steps)
            add_error("step_limit_reached")
            self._abandon()
            return
        except TransportError as e:
            self._last_error = e
            add_error("transport_error")
            self._log.error("transport_error", status_code=e.status_code, error=str(e))
            self._abandon()
            raise
        except (asyncio.CancelledError, GenerationCancelled):
            self._log.info(
                "generation_cancelled",
                salvaged_chars=len(self._streaming_text),
                unresolved=len(self._unresolved),
                reason=token.reason,
            )
            self._abandon(cancelled=True)
            if token.cancelled:
                return
            raise
        except Exception:
            self._log.exception("generation_failed")
            self._abandon()
            raise

        if self._pending:
            self._set_state(TurnState.AWAITING_CONFIRMATION)
            self._log.info(
                "awaiting_confirmation",
                pending=[inv.id for inv in self._pending],
                tools=[inv.name for inv in self._pending],
            )
        else:
            self._set_state(TurnState.IDLE)
