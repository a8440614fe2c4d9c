"""
Inventory consumption engine tests.

Test coverage:
1. Stock receipt creates individual units with sequential codes
2. Bulk deduction never goes negative (guarded update + DB constraint)
3. Individual usage counting and exhaustion
4. Discard workflow (approve / reject / invalid states)
5. Unit selection order for a session
6. Session inventory add/remove and its timeline entries
7. Appointment usage ledger
"""
from datetime import date, time

import pytest
from django.db import IntegrityError, transaction
from django.utils import timezone

from apps.core.exceptions import ConflictError, StateError, ValidationError
from apps.core.models import Center, Company
from apps.dialysis.models import TimelineEventType
from apps.dialysis.services import create_session, get_session_timeline, start_session
from apps.inventory.models import (
    DiscardRequestStatus,
    DiscardType,
    IndividualItem,
    IndividualItemStatus,
    InventoryStock,
    InventoryUsage,
    SessionInventory,
)
from apps.inventory.services import (
    add_inventory_to_session,
    add_stock,
    create_discard_request,
    deduct_available_quantity,
    get_available_items_for_session,
    get_usage,
    get_usage_by_appointment,
    increment_usage_count,
    process_discard_request,
    record_usage,
    remove_inventory_from_session,
)
from apps.scheduling.services import cancel_appointment, delete_appointment_permanently

TODAY = date(2024, 3, 4)


@pytest.fixture
def dialyzer_stock(dialyzer, center, company):
    return add_stock(dialyzer, center, company, 3, batch_number='B-DLZ-1', expiry_date=date(2025, 1, 31))


@pytest.fixture
def bloodline_stock(bloodline, center, company):
    return add_stock(bloodline, center, company, 10, batch_number='B-BL-1')


@pytest.fixture
def unit(dialyzer_stock):
    return IndividualItem.objects.filter(stock=dialyzer_stock).order_by('id').first()


@pytest.fixture
def session(appointment):
    return create_session(
        appointment,
        appointment.patient,
        appointment.center,
        appointment.appointment_date,
        scheduled_start_time=time(9, 0),
    )


def _use(unit, times):
    for _ in range(times):
        unit = increment_usage_count(unit)
    return unit


# ============================================================================
# Stock receipt
# ============================================================================

@pytest.mark.django_db
class TestAddStock:

    def test_individual_units_are_numbered(self, dialyzer_stock, dialyzer, center, company):
        codes = list(
            IndividualItem.objects.filter(item=dialyzer).order_by('id').values_list('individual_item_code', flat=True)
        )
        assert codes == ['DLZ-001', 'DLZ-002', 'DLZ-003']

        add_stock(dialyzer, center, company, 2)
        assert IndividualItem.objects.filter(item=dialyzer).order_by('-id').first().individual_item_code == 'DLZ-005'

    def test_units_start_available_with_item_maximum(self, unit):
        assert unit.status == IndividualItemStatus.AVAILABLE
        assert unit.is_available is True
        assert unit.current_usage_count == 0
        assert unit.max_usage_count == 5

    def test_bulk_stock_has_no_units(self, bloodline_stock):
        assert bloodline_stock.available_quantity == 10
        assert bloodline_stock.individual_items.count() == 0

    def test_non_positive_quantity_rejected(self, bloodline, center, company):
        with pytest.raises(ValidationError):
            add_stock(bloodline, center, company, 0)

    def test_center_from_other_company_rejected(self, bloodline, center, company):
        other_center = Center.objects.create(
            company=Company.objects.create(company_code='OTH', company_name='Other'),
            center_code='OTH01',
            center_name='Other Centre',
        )
        with pytest.raises(ValidationError):
            add_stock(bloodline, other_center, company, 5)


# ============================================================================
# Bulk deduction
# ============================================================================

@pytest.mark.django_db
class TestBulkDeduction:

    def test_deducts_available_quantity(self, bloodline_stock):
        stock = deduct_available_quantity(bloodline_stock, 4)

        assert stock.available_quantity == 6
        assert stock.quantity == 10

    def test_deducting_to_zero_is_allowed(self, bloodline_stock):
        assert deduct_available_quantity(bloodline_stock, 10).available_quantity == 0

    def test_insufficient_stock_rejected_without_change(self, bloodline_stock):
        with pytest.raises(ConflictError, match='Insufficient stock'):
            deduct_available_quantity(bloodline_stock, 11)

        bloodline_stock.refresh_from_db()
        assert bloodline_stock.available_quantity == 10

    def test_database_rejects_negative_available_quantity(self, bloodline_stock):
        with pytest.raises(IntegrityError):
            with transaction.atomic():
                InventoryStock.objects.filter(pk=bloodline_stock.pk).update(available_quantity=-1)


# ============================================================================
# Individual units
# ============================================================================

@pytest.mark.django_db
class TestIndividualUsage:

    def test_first_use_moves_to_in_use(self, unit):
        unit = increment_usage_count(unit)

        assert unit.status == IndividualItemStatus.IN_USE
        assert unit.current_usage_count == 1
        assert unit.first_used_date is not None
        assert unit.is_available is True

    def test_exhausted_at_maximum(self, unit):
        unit = _use(unit, 5)

        assert unit.status == IndividualItemStatus.EXHAUSTED
        assert unit.is_available is False

        with pytest.raises(StateError):
            increment_usage_count(unit)
        unit.refresh_from_db()
        assert unit.current_usage_count == 5

    def test_available_for_session_ordering(self, dialyzer, dialyzer_stock, center, company):
        first, second, third = IndividualItem.objects.filter(stock=dialyzer_stock).order_by('id')
        _use(second, 2)
        _use(third, 1)
        expired = add_stock(dialyzer, center, company, 1, expiry_date=date(2024, 1, 1))

        units = get_available_items_for_session(dialyzer, center, today=TODAY)

        assert [u.id for u in units] == [second.id, third.id, first.id]
        assert not any(u.stock_id == expired.id for u in units)

    def test_exhausted_units_not_offered(self, dialyzer, unit, center):
        _use(unit, 5)

        units = get_available_items_for_session(dialyzer, center, today=TODAY)

        assert unit.id not in [u.id for u in units]


# ============================================================================
# Discard workflow
# ============================================================================

@pytest.mark.django_db
class TestDiscardWorkflow:

    def test_request_takes_unit_out_of_service(self, unit, nurse_user):
        _use(unit, 2)

        request = create_discard_request(unit, DiscardType.DAMAGED, 'Cracked housing', actor=nurse_user)

        unit.refresh_from_db()
        assert unit.status == IndividualItemStatus.DISCARD_REQUESTED
        assert unit.is_available is False
        assert request.status == DiscardRequestStatus.PENDING
        assert request.current_usage_count == 2
        assert request.minimum_usage_count == 3
        assert request.previous_status == IndividualItemStatus.IN_USE

    def test_reason_required(self, unit):
        with pytest.raises(ValidationError):
            create_discard_request(unit, DiscardType.EARLY, '')

    def test_approve_discards_unit(self, unit, admin_user):
        request = create_discard_request(unit, DiscardType.DAMAGED, 'Cracked housing')

        reviewed = process_discard_request(request, approve=True, comments='ok', reviewer=admin_user)

        unit.refresh_from_db()
        assert reviewed.status == DiscardRequestStatus.APPROVED
        assert reviewed.reviewed_by == admin_user
        assert unit.status == IndividualItemStatus.DISCARDED
        assert unit.discard_reason == 'Cracked housing'
        assert unit.discarded_date is not None

    def test_reject_returns_unit_to_available(self, unit):
        _use(unit, 1)
        request = create_discard_request(unit, DiscardType.EARLY, 'Suspected leak')

        process_discard_request(request, approve=False, comments='Tested fine')

        unit.refresh_from_db()
        assert unit.status == IndividualItemStatus.AVAILABLE
        assert unit.is_available is True
        assert unit.current_usage_count == 1

    def test_reject_keeps_exhausted_unit_exhausted(self, unit):
        _use(unit, 5)
        request = create_discard_request(unit, DiscardType.EXHAUSTED, 'Max uses reached')

        process_discard_request(request, approve=False)

        unit.refresh_from_db()
        assert unit.status == IndividualItemStatus.EXHAUSTED
        assert unit.is_available is False

    def test_request_processed_only_once(self, unit):
        request = create_discard_request(unit, DiscardType.OTHER, 'Lost label')
        process_discard_request(request, approve=False)

        with pytest.raises(StateError, match='already'):
            process_discard_request(request, approve=True)

    def test_discarded_unit_cannot_be_requested_again(self, unit):
        request = create_discard_request(unit, DiscardType.DAMAGED, 'Broken')
        process_discard_request(request, approve=True)

        with pytest.raises(StateError):
            create_discard_request(unit, DiscardType.DAMAGED, 'Broken again')

    def test_pending_request_blocks_second_request(self, unit):
        create_discard_request(unit, DiscardType.DAMAGED, 'Broken')

        with pytest.raises(StateError):
            create_discard_request(unit, DiscardType.DAMAGED, 'Broken')

    def test_unit_in_discard_workflow_cannot_be_used(self, unit):
        create_discard_request(unit, DiscardType.DAMAGED, 'Broken')

        with pytest.raises(StateError):
            increment_usage_count(unit)


# ============================================================================
# Session inventory
# ============================================================================

@pytest.mark.django_db
class TestSessionInventory:

    def test_add_individual_unit(self, session, dialyzer, dialyzer_stock, unit, nurse_user):
        row = add_inventory_to_session(
            session, dialyzer, dialyzer_stock, 3, actor=nurse_user, individual_item=unit, condition='new'
        )

        unit.refresh_from_db()
        assert row.quantity_used == 1
        assert row.usage_number == 1
        assert row.individual_item == unit
        assert unit.current_usage_count == 1
        last = list(get_session_timeline(session))[-1]
        assert last.event_type == TimelineEventType.INVENTORY_ADDED
        assert last.event_description == 'Item added: Dialyzer F8 (Qty: 1)'

    def test_add_bulk_item_deducts_stock(self, session, bloodline, bloodline_stock):
        add_inventory_to_session(session, bloodline, bloodline_stock, 2)

        bloodline_stock.refresh_from_db()
        assert bloodline_stock.available_quantity == 8

    def test_individual_item_requires_unit(self, session, dialyzer, dialyzer_stock):
        with pytest.raises(ValidationError):
            add_inventory_to_session(session, dialyzer, dialyzer_stock, 1)

    def test_same_item_twice_rejected(self, session, bloodline, bloodline_stock):
        add_inventory_to_session(session, bloodline, bloodline_stock, 1)

        with pytest.raises(ConflictError):
            add_inventory_to_session(session, bloodline, bloodline_stock, 1)

        bloodline_stock.refresh_from_db()
        assert bloodline_stock.available_quantity == 9

    def test_insufficient_bulk_stock_leaves_no_row(self, session, bloodline, bloodline_stock):
        with pytest.raises(ConflictError):
            add_inventory_to_session(session, bloodline, bloodline_stock, 50)

        assert SessionInventory.objects.filter(session=session).count() == 0

    def test_add_after_start_rejected(self, session, bloodline, bloodline_stock):
        start_session(session)

        with pytest.raises(StateError):
            add_inventory_to_session(session, bloodline, bloodline_stock, 1)

    def test_remove_bulk_restores_stock(self, session, bloodline, bloodline_stock):
        row = add_inventory_to_session(session, bloodline, bloodline_stock, 3)

        remove_inventory_from_session(row)

        bloodline_stock.refresh_from_db()
        assert bloodline_stock.available_quantity == 10
        assert SessionInventory.objects.filter(session=session).count() == 0
        last = list(get_session_timeline(session))[-1]
        assert last.event_type == TimelineEventType.INVENTORY_REMOVED
        assert last.event_description == 'Item removed: Bloodline Set (Qty: 3)'

    def test_remove_individual_keeps_usage_count(self, session, dialyzer, dialyzer_stock, unit):
        row = add_inventory_to_session(session, dialyzer, dialyzer_stock, 1, individual_item=unit)

        remove_inventory_from_session(row)

        unit.refresh_from_db()
        assert unit.current_usage_count == 1

    def test_remove_after_start_rejected(self, session, bloodline, bloodline_stock):
        row = add_inventory_to_session(session, bloodline, bloodline_stock, 1)
        start_session(session)

        with pytest.raises(StateError):
            remove_inventory_from_session(row)


# ============================================================================
# Appointment usage ledger
# ============================================================================

@pytest.mark.django_db
class TestUsageLedger:

    def test_individual_unit_usage_numbers_follow_count(self, appointment, dialyzer, dialyzer_stock, unit, nurse_user):
        first = record_usage(appointment, dialyzer, dialyzer_stock, 1, actor=nurse_user, individual_item=unit)
        second = record_usage(appointment, dialyzer, dialyzer_stock, 1, individual_item=unit)

        unit.refresh_from_db()
        assert (first.usage_number, second.usage_number) == (1, 2)
        assert unit.current_usage_count == 2
        assert first.patient_id == appointment.patient_id
        assert first.center_id == appointment.center_id
        assert first.used_by == nurse_user

    def test_bulk_usage_deducts_stock(self, appointment, bloodline, bloodline_stock):
        usage = record_usage(appointment, bloodline, bloodline_stock, 3, condition='new')

        bloodline_stock.refresh_from_db()
        assert bloodline_stock.available_quantity == 7
        assert usage.usage_number == 1
        assert usage.quantity_used == 3
        assert usage.individual_item is None

    def test_insufficient_stock_leaves_no_row(self, appointment, bloodline, bloodline_stock):
        with pytest.raises(ConflictError):
            record_usage(appointment, bloodline, bloodline_stock, 11)

        assert InventoryUsage.objects.count() == 0

    def test_exhausted_unit_rolls_back(self, appointment, dialyzer, dialyzer_stock, unit):
        _use(unit, 5)

        with pytest.raises(StateError):
            record_usage(appointment, dialyzer, dialyzer_stock, 1, individual_item=unit)

        unit.refresh_from_db()
        assert unit.current_usage_count == 5
        assert InventoryUsage.objects.count() == 0

    def test_input_validation(self, appointment, dialyzer, dialyzer_stock, bloodline, bloodline_stock):
        with pytest.raises(ValidationError):
            record_usage(appointment, bloodline, bloodline_stock, 0)
        with pytest.raises(ValidationError):
            record_usage(appointment, dialyzer, dialyzer_stock, 1)
        with pytest.raises(ValidationError):
            record_usage(appointment, bloodline, dialyzer_stock, 1)

    def test_cancelled_appointment_rejected(self, appointment, bloodline, bloodline_stock):
        cancel_appointment(appointment.id)

        with pytest.raises(StateError):
            record_usage(appointment, bloodline, bloodline_stock, 1)

        bloodline_stock.refresh_from_db()
        assert bloodline_stock.available_quantity == 10

    def test_usage_by_appointment_sorted_by_item_name(self, appointment, dialyzer, dialyzer_stock, unit,
                                                      bloodline, bloodline_stock):
        record_usage(appointment, dialyzer, dialyzer_stock, 1, individual_item=unit)
        record_usage(appointment, bloodline, bloodline_stock, 2)

        rows = get_usage_by_appointment(appointment)

        assert [row.item.item_name for row in rows] == ['Bloodline Set', 'Dialyzer F8']

    def test_usage_filters(self, appointment, patient, make_patient, bloodline, bloodline_stock):
        record_usage(appointment, bloodline, bloodline_stock, 1)
        today = timezone.localdate(InventoryUsage.objects.get().usage_date)

        assert get_usage(patient=patient).count() == 1
        assert get_usage(patient=make_patient('P-777')).count() == 0
        assert get_usage(start_date=today, end_date=today).count() == 1
        assert get_usage(start_date=date(2000, 1, 1), end_date=date(2000, 1, 2)).count() == 0

    def test_appointment_with_usage_cannot_be_deleted(self, appointment, bloodline, bloodline_stock):
        record_usage(appointment, bloodline, bloodline_stock, 1)

        with pytest.raises(StateError):
            delete_appointment_permanently(appointment.id)
