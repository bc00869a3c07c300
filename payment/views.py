from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework import status
from drf_spectacular.utils import extend_schema, OpenApiExample
from drf_spectacular.types import OpenApiTypes

from engine.http import IDEMPOTENCY_KEY, idempotency_key, outcome_response
from .serializers import RecordPaymentSerializer
from .services import record_payment


class RecordPaymentView(APIView):
    """Record the payment that settles a billed order"""

    @extend_schema(
        summary="Record payment",
        description=(
            "billed -> paid. The amount must equal the order's current total. Only one payment "
            "can ever succeed per order: a concurrent second attempt, even with a different "
            "Idempotency-Key, receives 409 ConflictAlreadyPaid."
        ),
        request=RecordPaymentSerializer,
        parameters=[IDEMPOTENCY_KEY],
        responses={
            201: OpenApiTypes.OBJECT,
            400: OpenApiTypes.OBJECT,
            409: OpenApiTypes.OBJECT,
            503: OpenApiTypes.OBJECT
        },
        examples=[
            OpenApiExample(
                'Payment Request',
                summary='Card payment',
                description='Request body for recording a payment',
                value={'order_id': 42, 'method': 'card', 'amount_cents': 22898},
                request_only=True
            ),
            OpenApiExample(
                'Payment Success',
                summary='Successful payment',
                value={
                    'payment_id': 7,
                    'order_id': 42,
                    'method': 'card',
                    'amount_cents': 22898,
                    'status': 'completed',
                    'order_status': 'paid'
                },
                response_only=True,
                status_codes=['201']
            ),
            OpenApiExample(
                'Amount Mismatch',
                summary='Stale bill on the till',
                description='The amount sent does not match the order total',
                value={
                    'error': 'AmountMismatch',
                    'detail': 'Payment amount does not match the order total',
                    'order_id': 42,
                    'current_status': 'billed',
                    'amount_cents': 22000,
                    'total_amount_cents': 22898
                },
                response_only=True,
                status_codes=['409']
            )
        ]
    )
    def post(self, request):
        serializer = RecordPaymentSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        data = serializer.validated_data
        outcome = record_payment(
            data['order_id'],
            data['method'],
            data['amount_cents'],
            actor=request.user,
            reference=data['reference'],
            idempotency_key=idempotency_key(request)
        )
        return outcome_response(outcome)
