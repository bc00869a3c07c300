from rest_framework.response import Response
from drf_spectacular.utils import OpenApiParameter
from drf_spectacular.types import OpenApiTypes

from .errors import ValidationFailed

IDEMPOTENCY_HEADER = 'Idempotency-Key'
REPLAY_HEADER = 'Idempotent-Replayed'
# Matches IdempotencyRecord.key and Payment.idempotency_key
MAX_KEY_LENGTH = 255

IDEMPOTENCY_KEY = OpenApiParameter(
    name=IDEMPOTENCY_HEADER,
    type=OpenApiTypes.STR,
    location=OpenApiParameter.HEADER,
    required=False,
    description=(
        f'Caller-chosen key of at most {MAX_KEY_LENGTH} characters; '
        'repeating a request with the same key replays the first result'
    )
)


def idempotency_key(request):
    """Caller-chosen replay key; a missing header simply means no replay protection"""
    key = request.headers.get(IDEMPOTENCY_HEADER, '').strip()
    if len(key) > MAX_KEY_LENGTH:
        raise ValidationFailed(
            f'{IDEMPOTENCY_HEADER} must be at most {MAX_KEY_LENGTH} characters',
            field=IDEMPOTENCY_HEADER,
            max_length=MAX_KEY_LENGTH,
        )
    return key or None


def outcome_response(outcome):
    response = Response(outcome.body, status=outcome.status)
    if outcome.replayed:
        response[REPLAY_HEADER] = 'true'
    return response
