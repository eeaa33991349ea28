"""
StreamingExecutionController - cancellable, multi-subscriber chat streaming.

execute() returns a ChunkHandler immediately; the handle consumes the
generation on its own asyncio.Task. Because the task only starts once the
caller yields to the event loop, every subscriber registered right after
execute() sees every event.

Event contract per execution:
- data(chunk, accumulated) zero or more times, in backend arrival order
- then at most one terminal event: end(full_text) or error(exception)
- abort() produces neither end nor error

Subscribers registered after the terminal event receive nothing; there is
no replay buffer.
"""

import asyncio
import inspect
import logging
from enum import Enum
from typing import Any, AsyncIterator, Awaitable, Callable, Optional, Union

from ollama_provider.config import CONTEXT_OPTION_KEY, DEFAULT_CONTEXT_LENGTH
from ollama_provider.context import ContextDecision, optimize_context
from ollama_provider.messages import has_images, normalize_messages
from ollama_provider.model_cache import BackendFactory, ModelInfoCache
from ollama_provider.schema import (
    ChatMessage,
    MessagesRequest,
    PromptRequest,
    parse_execute_request,
)

logger = logging.getLogger(__name__)

DataCallback = Callable[[str, str], Union[None, Awaitable[None]]]
EndCallback = Callable[[str], Union[None, Awaitable[None]]]
ErrorCallback = Callable[[Exception], Union[None, Awaitable[None]]]


class ExecutionState(str, Enum):
    """Lifecycle of one execution. The last three are terminal and final."""
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    ABORTED = "aborted"
    FAILED = "failed"


TERMINAL_STATES = frozenset({
    ExecutionState.COMPLETED,
    ExecutionState.ABORTED,
    ExecutionState.FAILED,
})


async def _invoke(callback: Callable[..., Any], *args: Any) -> None:
    """Call a subscriber; await it if it is a coroutine function."""
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


class ChunkHandler:
    """
    Subscription handle for one streaming execution.

    Consumes an async iterator of text chunks on its own task and fans each
    chunk out to subscribers. The task is scheduled on construction and only
    runs once the caller yields to the event loop.

    Usage:
        handle = controller.execute(request)
        handle.on_data(lambda chunk, text: print(chunk, end=""))
        handle.on_end(lambda text: print())
        handle.on_error(lambda e: print(f"failed: {e}"))
        await handle.wait()
    """

    def __init__(self, chunks: AsyncIterator[str]) -> None:
        self._data_handlers: list[DataCallback] = []
        self._end_handlers: list[EndCallback] = []
        self._error_handlers: list[ErrorCallback] = []
        self._cancelled = asyncio.Event()
        self.state = ExecutionState.IDLE
        self.text = ""
        self._task = asyncio.get_running_loop().create_task(self._run(chunks))
        self._task.add_done_callback(self._on_task_done)

    # Subscription

    def on_data(self, callback: DataCallback) -> None:
        self._data_handlers.append(callback)

    def on_end(self, callback: EndCallback) -> None:
        self._end_handlers.append(callback)

    def on_error(self, callback: ErrorCallback) -> None:
        self._error_handlers.append(callback)

    # Control

    def abort(self) -> None:
        """
        Cancel the generation.

        Sets the cancellation token checked before each chunk and cancels
        the task, which closes the backend stream. A no-op once the
        execution has settled.
        """
        if self.state in TERMINAL_STATES:
            return
        self._cancelled.set()
        self.state = ExecutionState.ABORTED
        if not self._task.done():
            self._task.cancel()

    @property
    def aborted(self) -> bool:
        return self._cancelled.is_set()

    @property
    def done(self) -> bool:
        return self.state in TERMINAL_STATES

    async def wait(self) -> ExecutionState:
        """Wait until the generation settles and return the final state."""
        await asyncio.wait({self._task})
        return self.state

    # Generation

    def _on_task_done(self, task: asyncio.Task) -> None:
        # Cancelled from outside abort(), e.g. loop teardown
        if task.cancelled():
            self._cancelled.set()
            self._settle(ExecutionState.ABORTED)

    async def _run(self, chunks: AsyncIterator[str]) -> None:
        if self.aborted:
            return
        self.state = ExecutionState.RUNNING

        try:
            try:
                async for chunk in chunks:
                    if self.aborted:
                        logger.debug("Generation aborted")
                        break
                    if chunk:
                        await self._emit_data(chunk)
            finally:
                aclose = getattr(chunks, "aclose", None)
                if aclose is not None:
                    await aclose()

            if self.aborted:
                return
            logger.debug(f"Generation completed successfully: total_length={len(self.text)}")
            await self._emit_end()

        except asyncio.CancelledError:
            logger.debug("Generation aborted")
            raise
        except Exception as e:
            logger.error(f"Generation failed: {e}")
            await self._emit_error(e)

    def _settle(self, state: ExecutionState) -> bool:
        """Move to a terminal state. Returns False if already settled."""
        if self.state in TERMINAL_STATES:
            return False
        self.state = state
        return True

    async def _emit_data(self, chunk: str) -> None:
        self.text += chunk
        for callback in list(self._data_handlers):
            await _invoke(callback, chunk, self.text)

    async def _emit_end(self) -> None:
        if not self._settle(ExecutionState.COMPLETED):
            return
        for callback in list(self._end_handlers):
            try:
                await _invoke(callback, self.text)
            except Exception:
                logger.exception("End subscriber raised")

    async def _emit_error(self, error: Exception) -> None:
        if not self._settle(ExecutionState.FAILED):
            return
        for callback in list(self._error_handlers):
            try:
                await _invoke(callback, error)
            except Exception:
                logger.exception("Error subscriber raised")


class StreamingExecutionController:
    """
    Drives streamed chat generations against the backend.

    Window sizing is skipped for image-bearing requests; caller options are
    merged over the computed ones, so an explicit num_ctx always wins.
    """

    def __init__(
        self,
        cache: ModelInfoCache,
        backend_factory: BackendFactory,
        default_context_length: int = DEFAULT_CONTEXT_LENGTH,
    ):
        """
        Args:
            cache: Shared model info cache
            backend_factory: Returns the backend for a provider
            default_context_length: Backend's default num_ctx
        """
        self._cache = cache
        self._backend_factory = backend_factory
        self._default_context_length = default_context_length

    def execute(self, request: Union[dict, PromptRequest, MessagesRequest]) -> ChunkHandler:
        """
        Start a streaming generation and return its handle.

        Must be called with a running event loop.

        Raises:
            ConfigurationError: If the request has neither messages nor a prompt
        """
        request = parse_execute_request(request)
        messages = normalize_messages(request)

        logger.debug(
            f"Starting execute for model={request.provider.model} "
            f"kind={request.kind} messages={len(messages)} "
            f"images={sum(len(m.images or []) for m in messages)}"
        )

        return ChunkHandler(self._stream(request, messages))

    def _decide_context(self, messages: list[ChatMessage], last_context_length: int, hard_limit: int) -> ContextDecision:
        input_length = sum(len(message.content) for message in messages)
        logger.debug(f"Calculating context for text input: input_length={input_length}")
        return optimize_context(
            input_length,
            last_context_length or self._default_context_length,
            self._default_context_length,
            hard_limit,
        )

    async def _stream(
        self,
        request: Union[PromptRequest, MessagesRequest],
        messages: list[ChatMessage],
    ) -> AsyncIterator[str]:
        """
        Yield text chunks from the backend.

        The grown window is recorded only when the backend stream is
        exhausted, which happens before the handle emits end. An aborted
        or failed generation never reaches that point.
        """
        provider = request.provider
        model = provider.model

        model_info = await self._cache.get_model_info(provider, model)
        logger.debug(f"Retrieved model info: {model_info}")

        request_options: dict[str, Any] = {}
        decision: Optional[ContextDecision] = None
        if not has_images(messages):
            decision = self._decide_context(
                messages, model_info.last_context_length, model_info.context_length
            )
            if decision.requested_size:
                request_options[CONTEXT_OPTION_KEY] = decision.requested_size
            logger.debug(f"Optimized context: {decision}")

        if request.options:
            request_options.update(request.options)

        backend = self._backend_factory(provider)
        logger.debug("Sending chat request to Ollama")
        stream = backend.chat(
            model,
            [message.to_payload() for message in messages],
            request_options or None,
        )
        try:
            async for chunk in stream:
                yield chunk.content
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()

        if decision is not None and decision.should_persist:
            self._cache.record_last_context_length(provider, model, decision.requested_size)
            logger.debug(f"Updated context length: {decision.requested_size}")
