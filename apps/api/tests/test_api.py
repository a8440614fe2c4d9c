"""
HTTP API tests: error envelope, role permissions, and end-to-end flows.
"""
from datetime import time

import pytest

from apps.dialysis.services import create_session
from apps.inventory.models import IndividualItem
from apps.inventory.services import add_stock, create_discard_request
from apps.scheduling.models import Appointment

BOOKING = {
    'appointment_date': '2024-03-04',
    'start_time': '09:00',
    'end_time': '13:00',
}


@pytest.fixture
def session(appointment):
    return create_session(
        appointment, appointment.patient, appointment.center,
        appointment.appointment_date, scheduled_start_time=time(9, 0)
    )


@pytest.mark.django_db
class TestErrorFormat:

    def test_unauthenticated_request_rejected(self, api_client):
        response = api_client.get('/api/v1/scheduling/appointments/')

        assert response.status_code == 401

    def test_capacity_conflict_is_409(self, nurse_client, center, machine, make_patient):
        first = {**BOOKING, 'patient': make_patient('P-A').id, 'center': center.id}
        second = {**BOOKING, 'patient': make_patient('P-B').id, 'center': center.id}

        assert nurse_client.post('/api/v1/scheduling/appointments/', first, format='json').status_code == 201
        response = nurse_client.post('/api/v1/scheduling/appointments/', second, format='json')

        assert response.status_code == 409
        assert response.data['error_type'] == 'conflict'
        assert 'No machine available' in response.data['error']
        assert Appointment.objects.count() == 1

    def test_unknown_appointment_is_404(self, nurse_client):
        response = nurse_client.post('/api/v1/scheduling/appointments/999999/cancel/')

        assert response.status_code == 404
        assert response.data == {'error': 'Appointment not found', 'error_type': 'not_found'}

    def test_invalid_transition_is_409(self, nurse_client, appointment):
        response = nurse_client.post(
            f'/api/v1/scheduling/appointments/{appointment.id}/status/', {'status': 3}, format='json'
        )

        assert response.status_code == 409
        assert response.data['error_type'] == 'state'


@pytest.mark.django_db
class TestRolePermissions:

    def test_reception_can_book(self, reception_client, patient, center, machine):
        payload = {**BOOKING, 'patient': patient.id, 'center': center.id}

        response = reception_client.post('/api/v1/scheduling/appointments/', payload, format='json')

        assert response.status_code == 201
        assert response.data['status'] == 1

    def test_reception_cannot_change_status(self, reception_client, appointment):
        response = reception_client.post(
            f'/api/v1/scheduling/appointments/{appointment.id}/status/', {'status': 2}, format='json'
        )

        assert response.status_code == 403

    def test_permanent_delete_is_admin_only(self, nurse_client, admin_client, appointment):
        url = f'/api/v1/scheduling/appointments/{appointment.id}/permanent-delete/'

        assert nurse_client.delete(url).status_code == 403
        assert admin_client.delete(url).status_code == 204
        assert not Appointment.objects.filter(id=appointment.id).exists()

    def test_reception_reads_sessions_but_cannot_start(self, reception_client, session):
        assert reception_client.get(f'/api/v1/dialysis/sessions/{session.id}/').status_code == 200

        response = reception_client.post(f'/api/v1/dialysis/sessions/{session.id}/start/')

        assert response.status_code == 403

    def test_reception_has_no_inventory_access(self, reception_client, bloodline):
        assert reception_client.get('/api/v1/inventory/items/').status_code == 403

    def test_nurse_reads_items_but_cannot_edit_master(self, nurse_client, bloodline):
        assert nurse_client.get('/api/v1/inventory/items/').status_code == 200

        response = nurse_client.patch(
            f'/api/v1/inventory/items/{bloodline.id}/', {'reorder_level': 5}, format='json'
        )
        assert response.status_code == 403

    def test_discard_review_is_admin_only(self, nurse_client, admin_client, dialyzer, center, company):
        stock = add_stock(dialyzer, center, company, 1)
        unit = IndividualItem.objects.get(stock=stock)
        request = create_discard_request(unit, 'damaged', 'Cracked')
        url = f'/api/v1/inventory/discard-requests/{request.id}/process/'

        assert nurse_client.post(url, {'approve': True}, format='json').status_code == 403

        response = admin_client.post(url, {'approve': True, 'review_comments': 'ok'}, format='json')
        assert response.status_code == 200
        assert response.data['status'] == 'approved'


@pytest.mark.django_db
class TestSessionFlow:

    def test_complete_blocked_by_missing_mandatory_notes(self, nurse_client, session, bp_note_type, weight_note_type):
        base = f'/api/v1/dialysis/sessions/{session.id}'
        assert nurse_client.post(f'{base}/start/').status_code == 200

        response = nurse_client.post(f'{base}/complete/', {}, format='json')
        assert response.status_code == 400
        assert response.data['error_type'] == 'validation'
        assert 'Systolic BP' in response.data['error']

        for note_type, value in ((bp_note_type, '125'), (weight_note_type, '70.2')):
            created = nurse_client.post(
                f'{base}/notes/', {'note_type': note_type.id, 'note_value': value}, format='json'
            )
            assert created.status_code == 201

        response = nurse_client.post(f'{base}/complete/', {'post_session_notes': 'Uneventful'}, format='json')
        assert response.status_code == 200
        assert response.data['status'] == 'completed'

    def test_session_lifecycle_over_http(self, nurse_client, appointment, machine):
        created = nurse_client.post(
            '/api/v1/dialysis/sessions/',
            {'appointment': appointment.id, 'scheduled_start_time': '09:00'},
            format='json',
        )
        assert created.status_code == 201
        session_id = created.data['id']
        base = f'/api/v1/dialysis/sessions/{session_id}'

        assert nurse_client.post(f'{base}/assign-machine/', {'asset': machine.id}, format='json').status_code == 200
        assert nurse_client.post(f'{base}/start/').status_code == 200

        availability = nurse_client.get(f'/api/v1/dialysis/sessions/machine-availability/?center={appointment.center_id}')
        assert availability.data[0]['status'] == 'In Use'
        assert availability.data[0]['session_id'] == session_id

        terminated = nurse_client.post(f'{base}/terminate/', {'reason': 'Access clotted'}, format='json')
        assert terminated.status_code == 200
        assert terminated.data['status'] == 'terminated'

        timeline = nurse_client.get(f'{base}/timeline/')
        assert [row['event_type'] for row in timeline.data] == [
            'SessionCreated', 'MachineAssigned', 'SessionStarted', 'SessionTerminated',
        ]

    def test_machine_availability_requires_center(self, nurse_client):
        response = nurse_client.get('/api/v1/dialysis/sessions/machine-availability/')

        assert response.status_code == 400
        assert response.data['error_type'] == 'validation'

    def test_malformed_center_is_400(self, nurse_client):
        for path in ('active', 'machine-availability'):
            response = nurse_client.get(f'/api/v1/dialysis/sessions/{path}/?center=abc')

            assert response.status_code == 400
            assert response.data == {'error': 'Invalid center id', 'error_type': 'validation'}

    def test_unknown_center_is_404(self, nurse_client):
        response = nurse_client.get('/api/v1/dialysis/sessions/active/?center=999999')

        assert response.status_code == 404
        assert response.data['error_type'] == 'not_found'

    def test_add_bulk_inventory_over_http(self, nurse_client, session, bloodline, center, company):
        stock = add_stock(bloodline, center, company, 5)

        response = nurse_client.post(
            f'/api/v1/dialysis/sessions/{session.id}/inventory/',
            {'item': bloodline.id, 'stock': stock.id, 'quantity_used': 2},
            format='json',
        )

        assert response.status_code == 201
        stock.refresh_from_db()
        assert stock.available_quantity == 3

        listed = nurse_client.get(f'/api/v1/inventory/session-inventory/?session_id={session.id}')
        assert listed.data['count'] == 1
        assert listed.data['results'][0]['quantity_used'] == 2


@pytest.mark.django_db
class TestUsageLedgerApi:

    def test_record_and_list_by_appointment(self, nurse_client, appointment, bloodline, center, company):
        stock = add_stock(bloodline, center, company, 5)

        created = nurse_client.post(
            '/api/v1/inventory/usage/',
            {'appointment': appointment.id, 'item': bloodline.id, 'stock': stock.id, 'quantity_used': 2},
            format='json',
        )
        assert created.status_code == 201
        assert created.data['patient'] == appointment.patient_id
        assert created.data['usage_number'] == 1

        listed = nurse_client.get(f'/api/v1/inventory/usage/appointment/{appointment.id}/')
        assert listed.status_code == 200
        assert [row['item_code'] for row in listed.data] == ['BL']

        filtered = nurse_client.get(f'/api/v1/inventory/usage/?patient_id={appointment.patient_id}')
        assert filtered.data['count'] == 1

    def test_insufficient_stock_is_409(self, nurse_client, appointment, bloodline, center, company):
        stock = add_stock(bloodline, center, company, 1)

        response = nurse_client.post(
            '/api/v1/inventory/usage/',
            {'appointment': appointment.id, 'item': bloodline.id, 'stock': stock.id, 'quantity_used': 4},
            format='json',
        )

        assert response.status_code == 409
        assert response.data['error_type'] == 'conflict'

    def test_reception_cannot_record_usage(self, reception_client):
        assert reception_client.get('/api/v1/inventory/usage/').status_code == 403

    def test_malformed_filter_is_400(self, nurse_client):
        assert nurse_client.get('/api/v1/inventory/usage/?center_id=abc').status_code == 400

    def test_unknown_appointment_is_404(self, nurse_client):
        response = nurse_client.get('/api/v1/inventory/usage/appointment/999999/')

        assert response.status_code == 404
        assert response.data['error_type'] == 'not_found'


@pytest.mark.django_db
class TestCycleEndpoints:

    def test_current_cycle(self, nurse_client, patient):
        response = nurse_client.get(f'/api/v1/patients/patients/{patient.id}/current-cycle/')

        assert response.status_code == 200
        assert response.data['has_active_cycle'] is False
        assert response.data['planned_sessions'] == 18

    def test_sweep_endpoint_is_admin_only(self, nurse_client, admin_client):
        url = '/api/v1/patients/patients/process-expired-cycles/'

        assert nurse_client.post(url).status_code == 403
        response = admin_client.post(url)
        assert response.status_code == 200
        assert response.data['processed'] == 0
