"""
URL mappings for the wardboard API.

Paths mirror those called by the staff dashboard and the display kiosks.
Trailing slashes are deliberately omitted (``APPEND_SLASH = False``).
"""
from django.urls import path, include

from .views import alerts
from .views import displays
from .views import health


urlpatterns = [
    path('', include('django_prometheus.urls')),
    path('healthz', health.healthz, name='healthz'),
    # Emergency codes
    path('api/alerts/codes', alerts.alert_codes, name='alert_codes'),
    path('api/alerts/active', alerts.active_alerts, name='active_alerts'),
    path('api/alerts/history', alerts.alert_history, name='alert_history'),
    path('api/alerts/broadcast', alerts.broadcast_alert, name='broadcast_alert'),
    path('api/alerts/acknowledge', alerts.acknowledge_alert, name='acknowledge_alert'),
    path('api/alerts/resolve', alerts.resolve_alert, name='resolve_alert'),
    # Public displays
    path('api/displays', displays.list_displays, name='list_displays'),
    path('api/displays/heartbeat', displays.display_heartbeat, name='display_heartbeat'),
    path('api/displays/create', displays.create_display, name='create_display'),
    path('api/displays/<str:display_id>/data', displays.display_data, name='display_data'),
    path('api/displays/<str:display_id>/status', displays.set_display_status, name='set_display_status'),
    path('api/displays/<str:display_id>/restart', displays.restart_display, name='restart_display'),
    path('api/displays/<str:display_id>', displays.display_detail, name='display_detail'),
]
