from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework import status
from drf_spectacular.utils import extend_schema, OpenApiParameter
from drf_spectacular.types import OpenApiTypes

from . import audit
from .actors import ALL_CAPABILITIES
from .serializers import AuditLogEntrySerializer, AuditQuerySerializer, PermissionsSerializer


class AuditHistoryView(APIView):
    @extend_schema(
        summary="Audit history",
        description="Every recorded action on one entity, oldest first, including rejected attempts",
        parameters=[
            OpenApiParameter(
                name='entity_type',
                type=OpenApiTypes.STR,
                location=OpenApiParameter.QUERY,
                description='table, order, order_item or reservation'
            ),
            OpenApiParameter(
                name='entity_id',
                type=OpenApiTypes.STR,
                location=OpenApiParameter.QUERY,
                description='Entity ID'
            )
        ],
        responses={200: AuditLogEntrySerializer(many=True)}
    )
    def get(self, request):
        serializer = AuditQuerySerializer(data=request.query_params)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        entries = audit.history(**serializer.validated_data)
        return Response(AuditLogEntrySerializer(entries, many=True).data)


class MyPermissionsView(APIView):
    @extend_schema(
        summary="My permissions",
        description=(
            "Effective capabilities of the staff member named by the X-Staff-* headers, "
            "so a till can grey out actions before attempting them"
        ),
        responses={200: PermissionsSerializer}
    )
    def get(self, request):
        actor = request.user
        data = {
            'staff_id': actor.id,
            'role': actor.role,
            'permissions': {capability: actor.can(capability) for capability in ALL_CAPABILITIES},
        }
        return Response(PermissionsSerializer(data).data)
