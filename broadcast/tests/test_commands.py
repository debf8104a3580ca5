from io import StringIO

import pytest
from django.core.management import call_command

from broadcast.models import Department, Display, DrugItem, TokenQueueEntry

pytestmark = pytest.mark.django_db


def test_populate_data_seeds_everything():
    out = StringIO()
    call_command('populate_data', displays=30, stdout=out)

    assert Department.objects.count() == 5
    assert TokenQueueEntry.objects.count() == 10
    assert DrugItem.objects.filter(drug_name='Salbutamol Inhaler').exists()
    assert Display.objects.count() == 30
    assert Display.objects.get(id='DSP-001').location == 'Main Lobby'
    assert Display.objects.get(id='DSP-028').location == 'Ward 1 - Room 1'
    assert 'Demo data created.' in out.getvalue()


def test_populate_data_does_not_duplicate_displays():
    call_command('populate_data', displays=3, stdout=StringIO())
    out = StringIO()
    call_command('populate_data', displays=3, stdout=out)

    assert Display.objects.count() == 3
    assert Department.objects.count() == 5
    assert 'already exist' in out.getvalue()

    call_command('populate_data', displays=2, force=True, stdout=StringIO())
    assert sorted(Display.objects.values_list('id', flat=True)) == [
        'DSP-001', 'DSP-002', 'DSP-003', 'DSP-004', 'DSP-005',
    ]
