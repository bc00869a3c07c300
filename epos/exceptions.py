import logging

from rest_framework.response import Response
from rest_framework.views import exception_handler

from engine.errors import EngineError

logger = logging.getLogger(__name__)


def pos_exception_handler(exc, context):
    """Render engine errors as {"error": kind, "detail": ..., **context}"""
    if isinstance(exc, EngineError):
        if not exc.terminal:
            logger.error("%s in %s: %s", exc.kind, context.get('view').__class__.__name__, exc.message)
        return Response(exc.as_body(), status=exc.status_code)
    return exception_handler(exc, context)
