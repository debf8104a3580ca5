"""
Management command to populate the database with demo data.
"""
import random
from datetime import timedelta

from django.core.management.base import BaseCommand
from django.utils import timezone

from broadcast.models import Department, Display, DrugItem, TokenQueueEntry

DISPLAY_LOCATIONS = [
    "Main Lobby", "Emergency Ward", "ICU Wing A", "ICU Wing B", "OT Complex 1", "OT Complex 2",
    "Cardiology Dept", "Neurology Dept", "Pediatrics Ward", "Maternity Ward", "Pharmacy Main",
    "Pharmacy Emergency", "Blood Bank", "Laboratory", "Radiology", "Cafeteria", "Admin Office",
    "Reception Desk", "Waiting Area A", "Waiting Area B", "Corridor 1A", "Corridor 1B",
    "Corridor 2A", "Corridor 2B", "Elevator Bank 1", "Elevator Bank 2", "Parking Entrance",
]

DEPARTMENTS = [
    {'name': 'Emergency', 'location': 'Ground Floor, Block A', 'avg_wait_time': 10},
    {'name': 'Cardiology', 'location': '2nd Floor, Block B', 'avg_wait_time': 25},
    {'name': 'Neurology', 'location': '3rd Floor, Block B', 'avg_wait_time': 30},
    {'name': 'Pediatrics', 'location': '1st Floor, Block C', 'avg_wait_time': 15},
    {'name': 'Orthopedics', 'location': '2nd Floor, Block A', 'avg_wait_time': 20},
]

DRUGS = [
    ('Paracetamol 500mg', 1200, 300),
    ('Amoxicillin 250mg', 80, 150),
    ('Adrenaline 1mg/ml', 12, 40),
    ('Insulin Glargine', 25, 30),
    ('Atropine 0.6mg', 60, 20),
    ('Salbutamol Inhaler', 5, 25),
    ('Heparin 5000IU', 200, 100),
]

PATIENT_NAMES = [
    'John Doe', 'Priya Sharma', 'Ahmed Khan', 'Maria Garcia', 'Wei Chen',
    'Fatima Ali', 'Rahul Verma', 'Anna Kowalski', 'Kwame Mensah', 'Sara Lee',
]


class Command(BaseCommand):
    help = 'Populate database with demo departments, queue entries, drug stock and displays'

    def add_arguments(self, parser):
        parser.add_argument('--displays', type=int, default=73, help='Number of displays to create')
        parser.add_argument('--force', action='store_true', help='Seed displays even if some already exist')

    def handle(self, *args, **options):
        self.stdout.write('Creating demo data...')

        departments = self.create_departments()
        self.create_queue_entries(departments)
        self.create_drugs()
        self.create_displays(options['displays'], options['force'])

        self.stdout.write(self.style.SUCCESS('Demo data created.'))

    def create_departments(self):
        departments = []
        for data in DEPARTMENTS:
            dept, created = Department.objects.get_or_create(name=data['name'], defaults=data)
            departments.append(dept)
            self.stdout.write(f'Department: {dept.name}')
        return departments

    def create_queue_entries(self, departments):
        now = timezone.now()
        for i, name in enumerate(PATIENT_NAMES):
            dept = departments[i % len(departments)]
            token = f'{dept.name[0]}{100 + i}'
            TokenQueueEntry.objects.get_or_create(
                token=token,
                department=dept,
                defaults={
                    'patient_name': name,
                    'status': random.choice(TokenQueueEntry.OPEN_STATUSES),
                    'arrived_at': now - timedelta(minutes=random.randint(5, 120)),
                    'estimated_wait': random.randint(5, 60),
                },
            )
        self.stdout.write(f'Queue entries: {TokenQueueEntry.objects.count()}')

    def create_drugs(self):
        for name, stock, reorder in DRUGS:
            DrugItem.objects.get_or_create(
                drug_name=name,
                defaults={'stock_qty': stock, 'reorder_level': reorder},
            )
        self.stdout.write(f'Drug items: {DrugItem.objects.count()}')

    def create_displays(self, count, force):
        existing = Display.objects.count()
        if existing and not force:
            self.stdout.write(self.style.WARNING(f'{existing} displays already exist, skipping (use --force)'))
            return

        now = timezone.now()
        contents = [choice[0] for choice in Display.CONTENT_CHOICES]
        created = 0
        for i in range(count):
            display_id = f'DSP-{existing + i + 1:03d}'
            if Display.objects.filter(id=display_id).exists():
                continue
            if i < len(DISPLAY_LOCATIONS):
                location = DISPLAY_LOCATIONS[i]
            else:
                extra = i - len(DISPLAY_LOCATIONS)
                location = f'Ward {extra // 4 + 1} - Room {extra % 4 + 1}'
            roll = random.random()
            if roll > 0.3:
                status = Display.STATUS_ONLINE
            elif roll > 0.15:
                status = Display.STATUS_OFFLINE
            else:
                status = Display.STATUS_WARNING
            last_update = now - timedelta(seconds=random.randint(0, 60))
            Display.objects.create(
                id=display_id,
                location=location,
                content=random.choice(contents),
                status=status,
                online_since=(
                    None if status == Display.STATUS_OFFLINE
                    else last_update - timedelta(hours=random.randint(0, 23), minutes=random.randint(0, 59))
                ),
                last_update=last_update,
            )
            created += 1
        self.stdout.write(f'Displays created: {created}')
