"""
Tracer lookup for query instrumentation.

Spans are created through the tracer provider the application installed;
exporting them is the provider's business.
"""

import logging

from opentelemetry import trace

from .attributes import INSTRUMENTATION_NAME

logger = logging.getLogger(__name__)


def get_tracer(
    tracer_provider: trace.TracerProvider | None = None,
) -> trace.Tracer:
    """
    Get the tracer used for query spans.

    Args:
        tracer_provider: Provider to use (default: the global provider)

    Returns:
        Tracer named after this instrumentation
    """
    from pgotel import __version__

    if tracer_provider is None:
        logger.debug("Using global tracer provider for query spans")

    return trace.get_tracer(
        INSTRUMENTATION_NAME,
        __version__,
        tracer_provider=tracer_provider,
    )
