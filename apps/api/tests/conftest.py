"""
Global test fixtures for pytest.

Provides reusable fixtures for service and API testing:
- Authenticated API clients by role
- Company / center / patients
- Dialysis machines and note types
- Inventory items
"""
from datetime import date, time

import pytest
from rest_framework.test import APIClient

from apps.assets.models import Asset, AssetType
from apps.authz.models import User, Role, UserRole, RoleChoices
from apps.core.models import Company, Center
from apps.dialysis.models import SessionNoteType, NoteCategory
from apps.inventory.models import InventoryItem
from apps.patients.models import Patient
from apps.scheduling.services import create_appointment


def _make_user(email, role_name, **extra):
    user = User.objects.create_user(email=email, password='testpass123', is_active=True, **extra)
    role, _ = Role.objects.get_or_create(name=role_name)
    UserRole.objects.create(user=user, role=role)
    return user


def _client_for(user):
    client = APIClient()
    client.force_authenticate(user=user)
    return client


# ============================================================================
# Users & API Clients
# ============================================================================

@pytest.fixture
def api_client():
    """Unauthenticated DRF API client."""
    return APIClient()


@pytest.fixture
def admin_user(db):
    return _make_user('admin@test.com', RoleChoices.ADMIN, is_staff=True)


@pytest.fixture
def nurse_user(db):
    return _make_user('nurse@test.com', RoleChoices.NURSE)


@pytest.fixture
def reception_user(db):
    return _make_user('reception@test.com', RoleChoices.RECEPTION)


@pytest.fixture
def admin_client(admin_user):
    """Admin: master data, permanent delete, discard review."""
    return _client_for(admin_user)


@pytest.fixture
def nurse_client(nurse_user):
    """Nurse: clinical operations."""
    return _client_for(nurse_user)


@pytest.fixture
def reception_client(reception_user):
    """Reception: read and book only, no inventory."""
    return _client_for(reception_user)


# ============================================================================
# Organisation & Patients
# ============================================================================

@pytest.fixture
def company(db):
    return Company.objects.create(company_code='ACME', company_name='Acme Renal Care')


@pytest.fixture
def center(company):
    return Center.objects.create(
        company=company,
        center_code='NDC01',
        center_name='Nephro Dialysis Centre',
    )


@pytest.fixture
def make_patient(company, center):
    """Factory: make_patient('P-001')."""
    def _make(code, name=None):
        return Patient.objects.create(
            company=company,
            center=center,
            patient_code=code,
            patient_name=name or f'Patient {code}',
        )
    return _make


@pytest.fixture
def patient(make_patient):
    return make_patient('P-001', 'Test Patient')


# ============================================================================
# Machines
# ============================================================================

@pytest.fixture
def machine_type(db):
    return AssetType.objects.create(type_code='DM', type_name='Dialysis Machine', is_dialysis_machine=True)


@pytest.fixture
def make_machine(company, center, machine_type):
    """Factory: make_machine('DM-01-0001')."""
    def _make(code, target_center=None):
        target_center = target_center or center
        return Asset.objects.create(
            company=target_center.company,
            center=target_center,
            asset_type=machine_type,
            asset_code=code,
            asset_name=f'Machine {code}',
        )
    return _make


@pytest.fixture
def machine(make_machine):
    return make_machine('DM-01-0001')


# ============================================================================
# Appointments
# ============================================================================

SESSION_DATE = date(2024, 3, 4)


@pytest.fixture
def session_date():
    return SESSION_DATE


@pytest.fixture
def appointment(patient, center, company, machine, nurse_user):
    """Scheduled appointment 09:00-13:00 on SESSION_DATE."""
    return create_appointment(
        patient=patient,
        center=center,
        company=company,
        appointment_date=SESSION_DATE,
        start_time=time(9, 0),
        end_time=time(13, 0),
        actor=nurse_user,
    )


# ============================================================================
# Session master data
# ============================================================================

@pytest.fixture
def bp_note_type(db):
    """Mandatory numeric reading with bounds."""
    return SessionNoteType.objects.create(
        name='Systolic BP',
        code='SBP',
        unit='mmHg',
        is_mandatory=True,
        is_numeric=True,
        min_value=90,
        max_value=180,
        display_order=1,
        category=NoteCategory.VITAL_SIGNS,
    )


@pytest.fixture
def weight_note_type(db):
    return SessionNoteType.objects.create(
        name='Pre Weight',
        code='PRE_WT',
        unit='kg',
        is_mandatory=True,
        is_numeric=True,
        display_order=2,
        category=NoteCategory.VITAL_SIGNS,
    )


@pytest.fixture
def remark_note_type(db):
    return SessionNoteType.objects.create(
        name='Remark',
        code='REMARK',
        display_order=10,
        category=NoteCategory.OBSERVATIONS,
    )


# ============================================================================
# Inventory
# ============================================================================

@pytest.fixture
def dialyzer(db):
    """Reusable unit, 5 uses."""
    return InventoryItem.objects.create(
        item_code='DLZ',
        item_name='Dialyzer F8',
        is_individual_qty_tracking=True,
        maximum_usage_count=5,
        minimum_usage_count=3,
    )


@pytest.fixture
def bloodline(db):
    """Bulk consumable."""
    return InventoryItem.objects.create(
        item_code='BL',
        item_name='Bloodline Set',
        unit_of_measure='set',
    )
