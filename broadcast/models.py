"""
Database models for the wardboard backend.

Only the entities the emergency broadcast and public display paths read
or write live here: staff users, displays, departments, the token queue,
the drug inventory, mirrored emergency alerts and an audit trail.  The
wider hospital CRUD (patients, prescriptions, reports) belongs to other
services and is not modelled.
"""
from __future__ import annotations

from django.contrib.auth.models import AbstractUser
from django.db import models


class User(AbstractUser):
    """Staff user with a hospital role.

    Roles mirror the staff dashboards: administrators and technicians
    manage displays, any staff member may raise or handle an emergency
    code.
    """
    ROLE_CHOICES = [
        ('admin', 'Administrator'),
        ('doctor', 'Doctor'),
        ('nurse', 'Nurse'),
        ('pharmacist', 'Pharmacist'),
        ('technician', 'Technician'),
    ]
    role = models.CharField(max_length=16, choices=ROLE_CHOICES, default='nurse')

    def __str__(self) -> str:
        return f"{self.username} ({self.role})"


class Display(models.Model):
    """A physical or virtual public screen."""
    STATUS_ONLINE = 'online'
    STATUS_OFFLINE = 'offline'
    STATUS_WARNING = 'warning'
    STATUS_MAINTENANCE = 'maintenance'
    STATUS_CHOICES = [
        (STATUS_ONLINE, 'Online'),
        (STATUS_OFFLINE, 'Offline'),
        (STATUS_WARNING, 'Warning'),
        (STATUS_MAINTENANCE, 'Maintenance'),
    ]
    CONTENT_CHOICES = [
        ('Token Queue', 'Token Queue'),
        ('Department Status', 'Department Status'),
        ('Emergency Alerts', 'Emergency Alerts'),
        ('Drug Inventory', 'Drug Inventory'),
        ('Mixed Dashboard', 'Mixed Dashboard'),
    ]

    id = models.CharField(max_length=50, primary_key=True)
    location = models.CharField(max_length=255)
    # Reported state; dashboards filter on it, liveness is derived on read.
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_OFFLINE, db_index=True)
    content = models.CharField(max_length=32, choices=CONTENT_CHOICES, default='Token Queue')
    # Ward display group an alert may target instead of a single screen.
    zone = models.CharField(max_length=64, blank=True, db_index=True)
    online_since = models.DateTimeField(null=True, blank=True)
    last_update = models.DateTimeField()
    # Device clock of the newest ping; only used to drop pings that arrive out of order.
    last_heartbeat_at = models.DateTimeField(null=True, blank=True)
    config = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return f"{self.location} ({self.id})"


class Department(models.Model):
    name = models.CharField(max_length=255, unique=True)
    location = models.CharField(max_length=255, blank=True)
    avg_wait_time = models.PositiveIntegerField(default=0, help_text="Average wait in minutes")

    def __str__(self) -> str:
        return self.name


class TokenQueueEntry(models.Model):
    """A patient's place in a department queue."""
    STATUS_WAITING = 'waiting'
    STATUS_IN_PROGRESS = 'in_progress'
    STATUS_COMPLETED = 'completed'
    STATUS_CANCELLED = 'cancelled'
    STATUS_CHOICES = [
        (STATUS_WAITING, 'Waiting'),
        (STATUS_IN_PROGRESS, 'In progress'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]
    OPEN_STATUSES = (STATUS_WAITING, STATUS_IN_PROGRESS)

    token = models.CharField(max_length=20)
    patient_name = models.CharField(max_length=255)
    department = models.ForeignKey(Department, on_delete=models.CASCADE, related_name='queue_entries')
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_WAITING, db_index=True)
    arrived_at = models.DateTimeField()
    estimated_wait = models.PositiveIntegerField(default=0, help_text="Minutes")

    class Meta:
        indexes = [
            models.Index(fields=['status', 'arrived_at']),
        ]

    def __str__(self) -> str:
        return f"{self.token} in {self.department_id}"


class DrugItem(models.Model):
    """Pharmacy stock line; critical while stock is below the reorder level."""
    drug_name = models.CharField(max_length=255)
    stock_qty = models.PositiveIntegerField(default=0)
    reorder_level = models.PositiveIntegerField(default=0)
    last_updated = models.DateTimeField(auto_now=True)

    @property
    def is_critical(self) -> bool:
        return self.stock_qty < self.reorder_level

    def __str__(self) -> str:
        return f"{self.drug_name}: {self.stock_qty}/{self.reorder_level}"


class EmergencyAlert(models.Model):
    """Persisted copy of an alert held by the in-process registry."""
    id = models.CharField(max_length=64, primary_key=True)
    code_type = models.CharField(max_length=32)
    department = models.CharField(max_length=255)
    location = models.CharField(max_length=255)
    severity = models.CharField(max_length=16)
    message = models.TextField()
    status = models.CharField(max_length=16, db_index=True)
    broadcast_to = models.JSONField(default=list)
    created_at = models.DateTimeField()
    acknowledged_at = models.DateTimeField(null=True, blank=True)
    acknowledged_by = models.CharField(max_length=150, blank=True)
    resolved_at = models.DateTimeField(null=True, blank=True)
    resolved_by = models.CharField(max_length=150, blank=True)

    class Meta:
        indexes = [
            models.Index(fields=['status', 'created_at']),
        ]

    def __str__(self) -> str:
        return f"{self.code_type} @ {self.location} [{self.status}]"


class AuditEvent(models.Model):
    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True)
    action = models.CharField(max_length=64)
    object_type = models.CharField(max_length=64, blank=True, null=True)
    object_id = models.CharField(max_length=64, blank=True, null=True)
    detail = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['action', 'created_at']),
            models.Index(fields=['object_type', 'object_id', 'created_at']),
        ]

    def __str__(self):
        return f"{self.action}:{self.object_type}/{self.object_id}@{self.created_at:%F %T}"
