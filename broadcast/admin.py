"""
Django admin registrations for the broadcast models.

Lets superusers inspect mirrored alerts and the audit trail and edit
displays, departments, queue entries and stock levels via ``/admin/``.
"""

from django.contrib import admin

from .models import (
    AuditEvent,
    Department,
    Display,
    DrugItem,
    EmergencyAlert,
    TokenQueueEntry,
    User,
)


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ('username', 'role', 'is_staff', 'is_superuser')
    list_filter = ('role',)
    search_fields = ('username', 'first_name', 'last_name')


@admin.register(Display)
class DisplayAdmin(admin.ModelAdmin):
    list_display = ('id', 'location', 'status', 'content', 'zone', 'last_update')
    list_filter = ('status', 'content', 'zone')
    search_fields = ('id', 'location')


@admin.register(Department)
class DepartmentAdmin(admin.ModelAdmin):
    list_display = ('id', 'name', 'location', 'avg_wait_time')
    search_fields = ('name',)


@admin.register(TokenQueueEntry)
class TokenQueueEntryAdmin(admin.ModelAdmin):
    list_display = ('token', 'department', 'status', 'arrived_at', 'estimated_wait')
    list_filter = ('status', 'department')
    search_fields = ('token',)


@admin.register(DrugItem)
class DrugItemAdmin(admin.ModelAdmin):
    list_display = ('drug_name', 'stock_qty', 'reorder_level', 'last_updated')
    search_fields = ('drug_name',)


@admin.register(EmergencyAlert)
class EmergencyAlertAdmin(admin.ModelAdmin):
    list_display = ('id', 'code_type', 'severity', 'status', 'location', 'created_at')
    list_filter = ('status', 'code_type', 'severity')
    search_fields = ('id', 'location', 'department')
    readonly_fields = ('id', 'created_at', 'acknowledged_at', 'acknowledged_by', 'resolved_at', 'resolved_by')


@admin.register(AuditEvent)
class AuditEventAdmin(admin.ModelAdmin):
    list_display = ('action', 'object_type', 'object_id', 'user', 'created_at')
    list_filter = ('action', 'object_type')
    search_fields = ('object_id', 'user__username')
