"""
Error handler for marketplace searches.

Converts strategy-level failures into logged "no data" outcomes so the
orchestrator can move on to the next strategy, and explains failures to API
consumers.
"""

import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Optional

from .errors import MalformedResponse, NetworkFailure, SearchError


# Configure logging
logger = logging.getLogger(__name__)


class ErrorHandler:
    """
    Error handler with diagnostic context for search operations.

    A failed search is never retried with the same query; the caller substitutes
    the next strategy instead. The handler keeps a running failure count so
    callers can tell "nothing found" apart from "nothing reachable".

    Attributes:
        failure_count: Number of failures absorbed since the last reset
        last_error: Most recent absorbed exception, if any
    """

    def __init__(self):
        self.failure_count = 0
        self.last_error: Optional[SearchError] = None

    async def run(
        self,
        operation: Callable[..., Awaitable[Any]],
        *args,
        **kwargs
    ) -> Optional[Any]:
        """
        Execute a search operation, absorbing search failures.

        Args:
            operation: Async callable to execute
            *args: Positional arguments for the operation
            **kwargs: Keyword arguments for the operation

        Returns:
            The operation's result, or None when it raised a SearchError
        """
        try:
            return await operation(*args, **kwargs)
        except SearchError as e:
            self.failure_count += 1
            self.last_error = e
            self._log_error(
                operation_name=getattr(operation, "__name__", repr(operation)),
                error=e,
                args=args,
                kwargs=kwargs
            )
            return None

    def reset(self) -> None:
        """Forget absorbed failures before a new analysis."""
        self.failure_count = 0
        self.last_error = None

    def describe_failure(self, error: Exception) -> Dict[str, Any]:
        """
        Provide an explanation and recovery suggestions for a failure.

        Args:
            error: The exception to explain

        Returns:
            Dictionary with error analysis and recovery suggestions
        """
        suggestions = {
            'error_type': type(error).__name__,
            'error_message': str(error),
            'timestamp': datetime.now().isoformat(),
            'recovery_suggestions': []
        }

        if isinstance(error, MalformedResponse):
            suggestions['recovery_suggestions'].extend([
                'Check that MARKETPLACE_BASE_URL points at the JSON listings endpoint',
                'Verify the marketplace API version has not changed',
            ])
        elif isinstance(error, NetworkFailure):
            status = error.status
            if status is not None and status >= 500:
                suggestions['recovery_suggestions'].append(
                    'The marketplace is failing; try again in a few minutes'
                )
            elif status == 429:
                suggestions['recovery_suggestions'].append(
                    'Rate limited by the marketplace; wait before searching again'
                )
            else:
                suggestions['recovery_suggestions'].extend([
                    'Check network connectivity to the marketplace',
                    'Increase REQUEST_TIMEOUT_SECONDS if requests time out',
                ])
        else:
            suggestions['recovery_suggestions'].append(
                'Unexpected failure; see the server log for the traceback'
            )

        logger.info(f"Recovery suggestions: {suggestions['recovery_suggestions']}")
        return suggestions

    def _log_error(
        self,
        operation_name: str,
        error: Exception,
        args: tuple,
        kwargs: dict
    ) -> None:
        """
        Log error with timestamp, context, and diagnostic data.

        Args:
            operation_name: Name of the operation that failed
            error: The exception that occurred
            args: Positional arguments passed to the operation
            kwargs: Keyword arguments passed to the operation
        """
        context = {
            'timestamp': datetime.now().isoformat(),
            'operation': operation_name,
            'error_type': type(error).__name__,
            'error_message': str(error),
            'query': getattr(error, 'query', None),
            'status': getattr(error, 'status', None),
            'args': str(args) if args else 'None',
            'kwargs': {k: str(v) for k, v in kwargs.items()} if kwargs else {}
        }

        logger.error(
            f"Search failed: {operation_name} | "
            f"Error: {type(error).__name__}: {str(error)} | "
            f"Strategy skipped"
        )
        logger.debug(f"Full error context: {context}")
