"""Tool invoker: resolve, enrich, validate, call, normalize.

Every outcome becomes a :class:`ToolResult`. Unknown tools, schema
mismatches, server errors, and timeouts are reported as failed results
carrying a short safe message; the full detail only goes to the log.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from pocket.core.errors import (
    PocketError,
    ToolExecutionError,
    ToolTimeoutError,
)
from pocket.tools.base import ToolResult
from pocket.tools.schema import validate_arguments

if TYPE_CHECKING:
    from pocket.session.context import ContextStore
    from pocket.tools.base import ToolCall
    from pocket.tools.registry import ProviderRegistry

logger = logging.getLogger(__name__)


class ToolInvoker:
    """Executes model tool calls against the registered tool servers."""

    def __init__(
        self,
        registry: ProviderRegistry,
        *,
        timeout: float = 30.0,
        validate: bool = True,
    ) -> None:
        self._registry = registry
        self._timeout = timeout
        self._validate = validate

    async def invoke(
        self,
        call: ToolCall,
        context: ContextStore | None = None,
    ) -> ToolResult:
        """Execute one tool call. Never raises for tool-level failures.

        The returned result always carries ``call.id``.
        """
        arguments = dict(call.arguments)
        try:
            connection = self._registry.resolve(call.name)
            if context is not None:
                arguments = context.apply(call.name, arguments)
            if self._validate:
                validate_arguments(self._registry.descriptor(call.name), arguments)

            logger.info("Calling tool %s on %s", call.name, connection.name)
            logger.debug("Tool %s arguments: %s", call.name, arguments)
            try:
                async with asyncio.timeout(self._timeout):
                    content = await connection.call(call.name, arguments)
            except TimeoutError as e:
                raise ToolTimeoutError(call.name, self._timeout) from e

        except PocketError as e:
            logger.warning("Tool call %s (%s) failed: %s", call.name, call.id, e)
            return ToolResult.failure(call, e, f"Error: {e}", arguments)
        except Exception as e:
            # Server-side or transport failure: keep internals out of the
            # conversation, log them for the operator.
            logger.warning(
                "Tool call %s (%s) raised %s",
                call.name,
                call.id,
                type(e).__name__,
                exc_info=True,
            )
            error = ToolExecutionError(call.name, type(e).__name__)
            return ToolResult.failure(call, error, f"Error: {error}", arguments)

        logger.info("Tool call %s completed", call.name)
        return ToolResult.success(call, content, arguments)
