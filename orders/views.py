from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework import status
from drf_spectacular.utils import extend_schema, OpenApiParameter, OpenApiExample
from drf_spectacular.types import OpenApiTypes

from engine.http import IDEMPOTENCY_KEY, idempotency_key, outcome_response
from engine.lookups import fetch
from payment.services import close_order
from . import kitchen, services
from .models import Order, Product, VoidReason, DiscountDefinition
from .reports import daily_report
from .serializers import (
    OrderSerializer, SendToKitchenSerializer, ItemStatusSerializer, ReasonSerializer,
    OptionalReasonSerializer, DiscountRequestSerializer, CompItemSerializer, GenerateBillSerializer,
    ProductSerializer, VoidReasonSerializer, DiscountDefinitionSerializer, DailyReportQuerySerializer
)

ORDER_ID = OpenApiParameter(
    name='order_id',
    type=OpenApiTypes.INT,
    location=OpenApiParameter.PATH,
    description='Order ID'
)
ITEM_ID = OpenApiParameter(
    name='item_id',
    type=OpenApiTypes.INT,
    location=OpenApiParameter.PATH,
    description='Order item ID'
)
TOTALS_EXAMPLE = {
    'subtotalCents': 21400,
    'taxAmountCents': 1498,
    'serviceCents': 0,
    'discountCents': 0,
    'totalAmountCents': 22898
}


def _invalid(serializer):
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


class SendToKitchenView(APIView):
    @extend_schema(
        summary="Send items to the kitchen",
        description=(
            "Append pending items to an order. With order_id the items go on that order, with "
            "table_id on the seated table's order, with neither a takeaway order is opened."
        ),
        request=SendToKitchenSerializer,
        parameters=[IDEMPOTENCY_KEY],
        responses={200: OpenApiTypes.OBJECT, 400: OpenApiTypes.OBJECT, 409: OpenApiTypes.OBJECT},
        examples=[
            OpenApiExample(
                'Send Example',
                summary='Two burgers and a cola for table 5',
                value={'table_id': 5, 'items': [
                    {'product_id': 1, 'quantity': 2},
                    {'product_id': 3, 'quantity': 1, 'notes': 'no ice'}
                ]},
                request_only=True
            )
        ]
    )
    def post(self, request):
        serializer = SendToKitchenSerializer(data=request.data)
        if not serializer.is_valid():
            return _invalid(serializer)
        data = serializer.validated_data
        outcome = services.send_to_kitchen(
            [dict(line) for line in data['items']],
            actor=request.user,
            order_id=data['order_id'],
            table_id=data['table_id'],
            idempotency_key=idempotency_key(request)
        )
        return outcome_response(outcome)


class KitchenQueueView(APIView):
    @extend_schema(
        summary="Kitchen queue",
        description="Pending, preparing and ready items of live orders, oldest first",
        responses={200: OpenApiTypes.OBJECT}
    )
    def get(self, request):
        return Response({'items': kitchen.kitchen_queue()})


class ItemStatusView(APIView):
    @extend_schema(
        summary="Advance an item",
        description="Move an item one step along pending -> preparing -> ready -> served",
        request=ItemStatusSerializer,
        parameters=[ITEM_ID, IDEMPOTENCY_KEY],
        responses={200: OpenApiTypes.OBJECT, 409: OpenApiTypes.OBJECT},
        examples=[
            OpenApiExample(
                'Invalid Transition',
                summary='Skipping a step',
                value={
                    'error': 'InvalidTransition',
                    'detail': 'Cannot move item from pending to served',
                    'item_id': 7,
                    'current_status': 'pending',
                    'target_status': 'served'
                },
                response_only=True,
                status_codes=['409']
            )
        ]
    )
    def post(self, request, item_id):
        serializer = ItemStatusSerializer(data=request.data)
        if not serializer.is_valid():
            return _invalid(serializer)
        outcome = kitchen.advance_item(
            item_id, serializer.validated_data['status'],
            actor=request.user, idempotency_key=idempotency_key(request)
        )
        return outcome_response(outcome)


class ReopenItemView(APIView):
    @extend_schema(
        summary="Reopen a served item",
        description="served -> pending, for a dish that goes back to the kitchen",
        request=OptionalReasonSerializer,
        parameters=[ITEM_ID, IDEMPOTENCY_KEY],
        responses={200: OpenApiTypes.OBJECT, 409: OpenApiTypes.OBJECT}
    )
    def post(self, request, item_id):
        serializer = OptionalReasonSerializer(data=request.data)
        if not serializer.is_valid():
            return _invalid(serializer)
        outcome = kitchen.reopen_item(
            item_id, actor=request.user, reason=serializer.validated_data['reason'],
            idempotency_key=idempotency_key(request)
        )
        return outcome_response(outcome)


class CompleteOrderView(APIView):
    @extend_schema(
        summary="Complete an order in the kitchen",
        description="Serve every ready item. Fails while any item is still pending or preparing.",
        request=None,
        parameters=[ORDER_ID, IDEMPOTENCY_KEY],
        responses={200: OpenApiTypes.OBJECT, 409: OpenApiTypes.OBJECT}
    )
    def post(self, request, order_id):
        outcome = kitchen.complete_order(order_id, actor=request.user, idempotency_key=idempotency_key(request))
        return outcome_response(outcome)


class OrderDetailView(APIView):
    @extend_schema(
        summary="Get order details",
        description="Order with its items and stored bill totals",
        parameters=[ORDER_ID],
        responses={200: OrderSerializer, 404: OpenApiTypes.OBJECT}
    )
    def get(self, request, order_id):
        order = fetch(Order.objects.prefetch_related('items__product', 'items__active_discount'), pk=order_id)
        return Response(OrderSerializer(order).data)


class GenerateBillView(APIView):
    @extend_schema(
        summary="Generate the bill",
        description=(
            "open -> billed; the table moves to billed. Billing an already billed order returns "
            "the stored bill unchanged."
        ),
        request=GenerateBillSerializer,
        parameters=[ORDER_ID, IDEMPOTENCY_KEY],
        responses={200: OpenApiTypes.OBJECT, 409: OpenApiTypes.OBJECT},
        examples=[
            OpenApiExample(
                'Bill Response',
                summary='Bill with 7% tax',
                value={'order_id': 42, 'status': 'billed', 'tax_rate_bps': 700, 'bill': TOTALS_EXAMPLE},
                response_only=True
            )
        ]
    )
    def post(self, request, order_id):
        serializer = GenerateBillSerializer(data=request.data)
        if not serializer.is_valid():
            return _invalid(serializer)
        outcome = services.generate_bill(
            order_id, actor=request.user, customer_ref=serializer.validated_data['customer_ref'],
            idempotency_key=idempotency_key(request)
        )
        return outcome_response(outcome)


class CloseOrderView(APIView):
    @extend_schema(
        summary="Close a paid order",
        description="paid -> closed; the table moves to needs_cleaning",
        request=None,
        parameters=[ORDER_ID, IDEMPOTENCY_KEY],
        responses={200: OpenApiTypes.OBJECT, 409: OpenApiTypes.OBJECT}
    )
    def post(self, request, order_id):
        outcome = close_order(order_id, actor=request.user, idempotency_key=idempotency_key(request))
        return outcome_response(outcome)


class VoidOrderView(APIView):
    @extend_schema(
        summary="Void an open order",
        description="open -> voided. Requires manager_override.",
        request=ReasonSerializer,
        parameters=[ORDER_ID, IDEMPOTENCY_KEY],
        responses={200: OpenApiTypes.OBJECT, 403: OpenApiTypes.OBJECT, 409: OpenApiTypes.OBJECT}
    )
    def post(self, request, order_id):
        serializer = ReasonSerializer(data=request.data)
        if not serializer.is_valid():
            return _invalid(serializer)
        outcome = services.void_order(
            order_id, serializer.validated_data['reason'],
            actor=request.user, idempotency_key=idempotency_key(request)
        )
        return outcome_response(outcome)


class VoidItemView(APIView):
    @extend_schema(
        summary="Void an item",
        description=(
            "The item stays on the order but no longer counts toward the bill. "
            "Requires void_item; reasons flagged requires_manager also need manager_override."
        ),
        request=ReasonSerializer,
        parameters=[ORDER_ID, ITEM_ID, IDEMPOTENCY_KEY],
        responses={200: OpenApiTypes.OBJECT, 403: OpenApiTypes.OBJECT, 409: OpenApiTypes.OBJECT},
        examples=[
            OpenApiExample(
                'Void Example',
                summary='Wrong item rung in',
                value={'reason': 'wrong_item'},
                request_only=True
            )
        ]
    )
    def post(self, request, order_id, item_id):
        serializer = ReasonSerializer(data=request.data)
        if not serializer.is_valid():
            return _invalid(serializer)
        outcome = services.void_item(
            order_id, item_id, serializer.validated_data['reason'],
            actor=request.user, idempotency_key=idempotency_key(request)
        )
        return outcome_response(outcome)


class ItemDiscountView(APIView):
    @extend_schema(
        summary="Discount an item",
        description="Requires discount_item. An item carries at most one active discount.",
        request=DiscountRequestSerializer,
        parameters=[ORDER_ID, ITEM_ID, IDEMPOTENCY_KEY],
        responses={200: OpenApiTypes.OBJECT, 403: OpenApiTypes.OBJECT, 409: OpenApiTypes.OBJECT},
        examples=[
            OpenApiExample(
                'Discount Example',
                summary='10% staff discount',
                value={'discount_code': 'staff10', 'reason': 'Staff meal'},
                request_only=True
            )
        ]
    )
    def post(self, request, order_id, item_id):
        serializer = DiscountRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return _invalid(serializer)
        data = serializer.validated_data
        outcome = services.apply_item_discount(
            order_id, item_id, data['discount_code'],
            actor=request.user, reason=data['reason'], idempotency_key=idempotency_key(request)
        )
        return outcome_response(outcome)

    @extend_schema(
        summary="Remove an item discount",
        parameters=[ORDER_ID, ITEM_ID, IDEMPOTENCY_KEY],
        responses={200: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT, 409: OpenApiTypes.OBJECT}
    )
    def delete(self, request, order_id, item_id):
        outcome = services.remove_item_discount(
            order_id, item_id, actor=request.user, idempotency_key=idempotency_key(request)
        )
        return outcome_response(outcome)


class CompItemView(APIView):
    @extend_schema(
        summary="Comp an item",
        description="Requires comp_item. Comping part of a line splits it into a comped and a live row.",
        request=CompItemSerializer,
        parameters=[ORDER_ID, ITEM_ID, IDEMPOTENCY_KEY],
        responses={200: OpenApiTypes.OBJECT, 403: OpenApiTypes.OBJECT, 409: OpenApiTypes.OBJECT}
    )
    def post(self, request, order_id, item_id):
        serializer = CompItemSerializer(data=request.data)
        if not serializer.is_valid():
            return _invalid(serializer)
        data = serializer.validated_data
        outcome = services.comp_item(
            order_id, item_id, data['reason'],
            actor=request.user, quantity=data['quantity'], idempotency_key=idempotency_key(request)
        )
        return outcome_response(outcome)


class OrderDiscountView(APIView):
    @extend_schema(
        summary="Discount the whole order",
        description="Requires order_discount. Reported as discountCents on the bill.",
        request=DiscountRequestSerializer,
        parameters=[ORDER_ID, IDEMPOTENCY_KEY],
        responses={200: OpenApiTypes.OBJECT, 403: OpenApiTypes.OBJECT, 409: OpenApiTypes.OBJECT}
    )
    def post(self, request, order_id):
        serializer = DiscountRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return _invalid(serializer)
        data = serializer.validated_data
        outcome = services.apply_order_discount(
            order_id, data['discount_code'],
            actor=request.user, reason=data['reason'], idempotency_key=idempotency_key(request)
        )
        return outcome_response(outcome)

    @extend_schema(
        summary="Remove the order discount",
        parameters=[ORDER_ID, IDEMPOTENCY_KEY],
        responses={200: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT, 409: OpenApiTypes.OBJECT}
    )
    def delete(self, request, order_id):
        outcome = services.remove_order_discount(
            order_id, actor=request.user, idempotency_key=idempotency_key(request)
        )
        return outcome_response(outcome)


class ProductListView(APIView):
    @extend_schema(
        summary="List products",
        description="Active menu products with the ids and prices the kitchen send endpoint expects",
        responses={200: ProductSerializer(many=True)}
    )
    def get(self, request):
        products = Product.objects.filter(is_active=True).order_by('name', 'id')
        return Response(ProductSerializer(products, many=True).data)


class VoidReasonListView(APIView):
    @extend_schema(summary="List void reasons", responses={200: VoidReasonSerializer(many=True)})
    def get(self, request):
        reasons = VoidReason.objects.filter(is_active=True).order_by('code')
        return Response(VoidReasonSerializer(reasons, many=True).data)


class DiscountTypeListView(APIView):
    @extend_schema(summary="List discount types", responses={200: DiscountDefinitionSerializer(many=True)})
    def get(self, request):
        definitions = DiscountDefinition.objects.filter(is_active=True).order_by('code')
        return Response(DiscountDefinitionSerializer(definitions, many=True).data)


class DailyReportView(APIView):
    @extend_schema(
        summary="Daily sales report",
        description="Revenue, payment methods, voids, comps and best sellers for one day",
        parameters=[
            OpenApiParameter(
                name='date',
                type=OpenApiTypes.DATE,
                location=OpenApiParameter.QUERY,
                required=False,
                description='Day to report on (defaults to today)'
            )
        ],
        responses={200: OpenApiTypes.OBJECT}
    )
    def get(self, request):
        serializer = DailyReportQuerySerializer(data=request.query_params)
        if not serializer.is_valid():
            return _invalid(serializer)
        return Response(daily_report(serializer.validated_data.get('date')))

