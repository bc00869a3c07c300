from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework import status
from drf_spectacular.utils import extend_schema, OpenApiParameter, OpenApiExample
from drf_spectacular.types import OpenApiTypes

from engine.http import IDEMPOTENCY_KEY, idempotency_key, outcome_response
from . import services
from .models import Table, Reservation
from .serializers import (
    TableSerializer, CreateTableSerializer, UpdateTableSerializer, SeatTableSerializer,
    ReserveTableSerializer, TableTransitionSerializer, ReservationSerializer, ReservationQuerySerializer
)

TABLE_ID = OpenApiParameter(
    name='table_id',
    type=OpenApiTypes.INT,
    location=OpenApiParameter.PATH,
    description='Table ID'
)
CONFLICT_EXAMPLE = OpenApiExample(
    'Conflict',
    summary='Another request got there first',
    value={
        'error': 'ConflictAlreadySeated',
        'detail': 'Table is already seated by another request',
        'table_id': 5,
        'current_status': 'seated',
        'current_order_id': 42
    },
    response_only=True,
    status_codes=['409']
)


class TableListView(APIView):
    @extend_schema(
        summary="List tables",
        description="Floor plan: every active table with its current status and order",
        responses={200: TableSerializer(many=True)}
    )
    def get(self, request):
        tables = Table.objects.filter(is_active=True)
        return Response(TableSerializer(tables, many=True).data)

    @extend_schema(
        summary="Create a table",
        request=CreateTableSerializer,
        parameters=[IDEMPOTENCY_KEY],
        responses={201: TableTransitionSerializer, 400: OpenApiTypes.OBJECT},
        examples=[
            OpenApiExample(
                'Create Table Example',
                summary='Add table 12 for six',
                value={'number': 12, 'name': 'Window 12', 'capacity': 6, 'shape': 'rectangle'}
            )
        ]
    )
    def post(self, request):
        serializer = CreateTableSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        outcome = services.create_table(
            actor=request.user, idempotency_key=idempotency_key(request), **serializer.validated_data
        )
        return outcome_response(outcome)


class TableDetailView(APIView):
    @extend_schema(
        summary="Update a table",
        description="Rename or resize a table. Only allowed while it is available or blocked.",
        request=UpdateTableSerializer,
        parameters=[TABLE_ID, IDEMPOTENCY_KEY],
        responses={200: TableTransitionSerializer, 409: OpenApiTypes.OBJECT}
    )
    def put(self, request, table_id):
        serializer = UpdateTableSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        outcome = services.update_table(
            table_id, actor=request.user, idempotency_key=idempotency_key(request), **serializer.validated_data
        )
        return outcome_response(outcome)

    @extend_schema(
        summary="Delete a table",
        description="Soft delete. Only allowed while the table is available or blocked.",
        parameters=[TABLE_ID, IDEMPOTENCY_KEY],
        responses={200: OpenApiTypes.OBJECT, 409: OpenApiTypes.OBJECT}
    )
    def delete(self, request, table_id):
        outcome = services.delete_table(table_id, actor=request.user, idempotency_key=idempotency_key(request))
        return outcome_response(outcome)


class SeatTableView(APIView):
    @extend_schema(
        summary="Seat guests",
        description=(
            "available/reserved -> seated. Opens the table's order. When two tills seat the "
            "same table at once exactly one wins; the other receives 409 ConflictAlreadySeated."
        ),
        request=SeatTableSerializer,
        parameters=[TABLE_ID, IDEMPOTENCY_KEY],
        responses={200: TableTransitionSerializer, 409: OpenApiTypes.OBJECT},
        examples=[
            OpenApiExample(
                'Seat Example',
                summary='Seat four guests',
                value={'guest_count': 4},
                request_only=True
            ),
            CONFLICT_EXAMPLE
        ]
    )
    def post(self, request, table_id):
        serializer = SeatTableSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        outcome = services.seat_table(
            table_id,
            serializer.validated_data['guest_count'],
            actor=request.user,
            idempotency_key=idempotency_key(request)
        )
        return outcome_response(outcome)


class TableActionView(APIView):
    """Body-less table transition; subclasses name the service function"""
    action = None

    def run(self, request, table_id):
        outcome = type(self).action(table_id, actor=request.user, idempotency_key=idempotency_key(request))
        return outcome_response(outcome)


class UnseatTableView(TableActionView):
    action = staticmethod(services.unseat_table)

    @extend_schema(
        summary="Unseat a table",
        description="seated -> available, only while nothing has been ordered. The empty order is voided.",
        request=None,
        parameters=[TABLE_ID, IDEMPOTENCY_KEY],
        responses={200: TableTransitionSerializer, 409: OpenApiTypes.OBJECT}
    )
    def post(self, request, table_id):
        return self.run(request, table_id)


class ClearTableView(TableActionView):
    action = staticmethod(services.clear_table)

    @extend_schema(
        summary="Clear a table",
        description=(
            "seated/billed -> needs_cleaning once the order is settled. "
            "A paid order is closed and an empty one voided as part of clearing."
        ),
        request=None,
        parameters=[TABLE_ID, IDEMPOTENCY_KEY],
        responses={200: TableTransitionSerializer, 409: OpenApiTypes.OBJECT}
    )
    def post(self, request, table_id):
        return self.run(request, table_id)


class CleanTableView(TableActionView):
    action = staticmethod(services.clean_table)

    @extend_schema(
        summary="Mark a table clean",
        description="needs_cleaning -> available",
        request=None,
        parameters=[TABLE_ID, IDEMPOTENCY_KEY],
        responses={200: TableTransitionSerializer, 409: OpenApiTypes.OBJECT}
    )
    def post(self, request, table_id):
        return self.run(request, table_id)


class BlockTableView(TableActionView):
    action = staticmethod(services.block_table)

    @extend_schema(
        summary="Block a table",
        description="available -> blocked",
        request=None,
        parameters=[TABLE_ID, IDEMPOTENCY_KEY],
        responses={200: TableTransitionSerializer, 409: OpenApiTypes.OBJECT}
    )
    def post(self, request, table_id):
        return self.run(request, table_id)


class UnblockTableView(TableActionView):
    action = staticmethod(services.unblock_table)

    @extend_schema(
        summary="Unblock a table",
        description="blocked -> available",
        request=None,
        parameters=[TABLE_ID, IDEMPOTENCY_KEY],
        responses={200: TableTransitionSerializer, 409: OpenApiTypes.OBJECT}
    )
    def post(self, request, table_id):
        return self.run(request, table_id)


class ReserveTableView(APIView):
    @extend_schema(
        summary="Reserve a table",
        description="available -> reserved, recording who the reservation is for",
        request=ReserveTableSerializer,
        parameters=[TABLE_ID, IDEMPOTENCY_KEY],
        responses={201: OpenApiTypes.OBJECT, 409: OpenApiTypes.OBJECT},
        examples=[
            OpenApiExample(
                'Reserve Example',
                summary='Reservation for eight at 7pm',
                value={'customer_name': 'Patel', 'party_size': 8, 'reserved_for': '2024-01-01T19:00:00Z'},
                request_only=True
            )
        ]
    )
    def post(self, request, table_id):
        serializer = ReserveTableSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        data = serializer.validated_data
        outcome = services.reserve_table(
            table_id,
            data['customer_name'],
            data['party_size'],
            actor=request.user,
            reserved_for=data['reserved_for'],
            notes=data['notes'],
            idempotency_key=idempotency_key(request)
        )
        return outcome_response(outcome)


class ReservationListView(APIView):
    @extend_schema(
        summary="List reservations",
        description="Reservations in time order, optionally for one day or one status",
        parameters=[
            OpenApiParameter(
                name='date',
                type=OpenApiTypes.DATE,
                location=OpenApiParameter.QUERY,
                description='Day to list (YYYY-MM-DD)'
            ),
            OpenApiParameter(
                name='status',
                type=OpenApiTypes.STR,
                location=OpenApiParameter.QUERY,
                description='pending, seated or cancelled'
            )
        ],
        responses={200: ReservationSerializer(many=True)}
    )
    def get(self, request):
        serializer = ReservationQuerySerializer(data=request.query_params)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        query = serializer.validated_data

        reservations = Reservation.objects.select_related('table')
        if 'date' in query:
            reservations = reservations.filter(reserved_for__date=query['date'])
        if 'status' in query:
            reservations = reservations.filter(status=query['status'])
        reservations = reservations.order_by('reserved_for', 'id')
        return Response(ReservationSerializer(reservations, many=True).data)


class CancelReservationView(APIView):
    @extend_schema(
        summary="Cancel a reservation",
        description="Frees the table (reserved -> available) unless another reservation still holds it",
        request=None,
        parameters=[
            OpenApiParameter(
                name='reservation_id',
                type=OpenApiTypes.INT,
                location=OpenApiParameter.PATH,
                description='Reservation ID'
            ),
            IDEMPOTENCY_KEY
        ],
        responses={200: OpenApiTypes.OBJECT, 409: OpenApiTypes.OBJECT}
    )
    def post(self, request, reservation_id):
        outcome = services.cancel_reservation(
            reservation_id, actor=request.user, idempotency_key=idempotency_key(request)
        )
        return outcome_response(outcome)
