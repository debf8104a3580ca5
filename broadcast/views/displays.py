"""
Public display endpoints.

Screens are unauthenticated kiosks: they post heartbeats and poll their
data feed without a user session.  Managing the fleet (registering,
editing, switching on/off, restarting) is reserved for administrators and
technicians.
"""
from __future__ import annotations

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response

from ..permissions import IsDisplayAdmin, IsDisplayAdminOrStaffReadOnly, IsStaffRole
from ..serializers.displays import (
    DisplayCreateSerializer,
    DisplayStatusSerializer,
    DisplayUpdateSerializer,
    HeartbeatSerializer,
)
from ..services import heartbeat
from ..services.display_feed import get_display_data


@api_view(['POST'])
@permission_classes([AllowAny])
def display_heartbeat(request):
    s = HeartbeatSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    data = s.validated_data
    display = heartbeat.record_heartbeat(
        data['displayId'],
        status=data.get('status'),
        timestamp=data.get('timestamp') or None,
    )
    return Response({'ok': True, 'data': {
        'displayId': display.id,
        'status': display.status,
        'timestamp': display.last_update.isoformat(),
    }})


@api_view(['GET'])
@permission_classes([AllowAny])
def display_data(request, display_id: str):
    """Snapshot rendered by a public screen; degrades to empty sections on outage."""
    return Response({'ok': True, 'data': get_display_data(display_id)})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaffRole])
def list_displays(request):
    return Response({'ok': True, 'data': heartbeat.list_displays(status=request.query_params.get('status'))})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsDisplayAdmin])
def create_display(request):
    s = DisplayCreateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    display = heartbeat.create_display(**s.validated_data)
    return Response({'ok': True, 'data': heartbeat.format_display(display)}, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsDisplayAdmin])
def set_display_status(request, display_id: str):
    s = DisplayStatusSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    display = heartbeat.set_display_status(display_id, s.validated_data['status'])
    return Response({'ok': True, 'data': heartbeat.format_display(display)})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsDisplayAdmin])
def restart_display(request, display_id: str):
    display = heartbeat.restart_display(display_id)
    return Response({'ok': True, 'data': heartbeat.format_display(display)})


@api_view(['GET', 'PATCH'])
@permission_classes([IsAuthenticated, IsDisplayAdminOrStaffReadOnly])
def display_detail(request, display_id: str):
    if request.method == 'PATCH':
        s = DisplayUpdateSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        display = heartbeat.update_display(display_id, **s.validated_data)
    else:
        display = heartbeat.get_display(display_id)
    return Response({'ok': True, 'data': heartbeat.format_display(display)})
