"""
Emergency code endpoints.

Staff raise a code from the dashboard, acknowledge it when they respond
and resolve it once the situation is over.  Every state change goes
through the process alert registry, which pushes it to connected
dashboards and displays; the view only validates input and records who
did what.
"""
from __future__ import annotations

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response

from ..codes import list_emergency_codes
from ..permissions import IsStaffRole
from ..serializers.alerts import AlertIdSerializer, BroadcastSerializer
from ..services.alerts import get_registry
from ..services.audit import record_alert_event


@api_view(['GET'])
@permission_classes([AllowAny])
def alert_codes(request):
    """Return the emergency code catalogue used to build the broadcast form."""
    return Response({'ok': True, 'data': list_emergency_codes()})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaffRole])
def active_alerts(request):
    alerts = get_registry().list_active()
    return Response({'ok': True, 'data': [a.as_dict() for a in alerts]})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaffRole])
def alert_history(request):
    """All alerts known to this process, newest first."""
    alerts = get_registry().history()
    alerts.reverse()
    return Response({'ok': True, 'data': [a.as_dict() for a in alerts]})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsStaffRole])
def broadcast_alert(request):
    s = BroadcastSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    data = s.validated_data
    alert = get_registry().broadcast(
        code_type=data['codeType'],
        department=data['department'],
        location=data['location'],
        message=data.get('message'),
        severity=data.get('severity'),
        broadcast_to=data.get('broadcastTo'),
        actor=request.user.username,
    )
    record_alert_event(request.user, 'alert_broadcast', alert, {
        'codeType': alert.code_type,
        'severity': alert.severity,
        'location': alert.location,
        'broadcastTo': list(alert.broadcast_to),
    })
    return Response({'ok': True, 'data': alert.as_dict()}, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsStaffRole])
def acknowledge_alert(request):
    s = AlertIdSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    alert = get_registry().acknowledge(s.validated_data['id'], actor=request.user.username)
    record_alert_event(request.user, 'alert_acknowledge', alert)
    return Response({'ok': True, 'data': alert.as_dict()})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsStaffRole])
def resolve_alert(request):
    s = AlertIdSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    alert = get_registry().resolve(s.validated_data['id'], actor=request.user.username)
    record_alert_event(request.user, 'alert_resolve', alert)
    return Response({'ok': True, 'data': alert.as_dict()})
