"""
Tests for staff roles and role-based permissions.
"""
import pytest
from rest_framework.test import APIRequestFactory

from apps.authz.models import Role, RoleChoices, User
from apps.core.models import Company
from apps.authz.permissions import CanBookAppointments, IsAdmin, IsAdminOrReadOnly, IsClinicalStaff

factory = APIRequestFactory()


def _request(method, user):
    request = getattr(factory, method)('/api/v1/anything/')
    request.user = user
    return request


@pytest.mark.django_db
class TestRoleBootstrap:
    """Roles are created by migrations."""

    def test_all_roles_exist_after_migrations(self):
        names = set(Role.objects.values_list('name', flat=True))

        assert {choice.value for choice in RoleChoices} <= names

    def test_roles_are_not_duplicated_by_fixtures(self, nurse_user, admin_user):
        assert Role.objects.filter(name=RoleChoices.NURSE).count() == 1


@pytest.mark.django_db
class TestPermissionClasses:

    def test_admin_only(self, admin_user, nurse_user):
        assert IsAdmin().has_permission(_request('post', admin_user), None) is True
        assert IsAdmin().has_permission(_request('post', nurse_user), None) is False

    def test_superuser_without_role_is_not_admin(self, django_user_model):
        root = django_user_model.objects.create_superuser(email='root@test.com', password='x')

        assert IsAdmin().has_permission(_request('get', root), None) is False

    def test_master_data_read_only_for_staff(self, nurse_user):
        assert IsAdminOrReadOnly().has_permission(_request('get', nurse_user), None) is True
        assert IsAdminOrReadOnly().has_permission(_request('post', nurse_user), None) is False

    def test_reception_reads_clinical_data(self, reception_user):
        assert IsClinicalStaff().has_permission(_request('get', reception_user), None) is True
        assert IsClinicalStaff().has_permission(_request('post', reception_user), None) is False

    def test_reception_books(self, reception_user):
        assert CanBookAppointments().has_permission(_request('post', reception_user), None) is True

    def test_user_without_role_is_denied(self, django_user_model):
        user = django_user_model.objects.create_user(email='norole@test.com', password='x')

        assert CanBookAppointments().has_permission(_request('get', user), None) is False
        assert IsClinicalStaff().has_permission(_request('get', user), None) is False


@pytest.mark.django_db
class TestUserAdministration:

    def test_user_list_is_admin_only(self, admin_client, nurse_client):
        assert nurse_client.get('/api/v1/authz/users/').status_code == 403
        assert admin_client.get('/api/v1/authz/users/').status_code == 200

    def test_filter_staff_by_home_center(self, admin_client, nurse_user, reception_user, center):
        nurse_user.company = center.company
        nurse_user.center = center
        nurse_user.save()

        response = admin_client.get(f'/api/v1/authz/users/?center_id={center.id}')

        assert response.status_code == 200
        assert [row['email'] for row in response.data['results']] == [nurse_user.email]

    def test_center_must_belong_to_company(self, admin_client, center):
        other = Company.objects.create(company_code='OTH', company_name='Other')
        payload = {
            'email': 'tech@test.com',
            'password': 'longpassword1',
            'company': other.id,
            'center': center.id,
            'roles': ['technician'],
        }

        response = admin_client.post('/api/v1/authz/users/', payload, format='json')

        assert response.status_code == 400
        assert not User.objects.filter(email='tech@test.com').exists()

    def test_company_taken_from_center(self, admin_client, center):
        payload = {
            'email': 'tech@test.com',
            'password': 'longpassword1',
            'center': center.id,
            'roles': ['technician'],
        }

        response = admin_client.post('/api/v1/authz/users/', payload, format='json')

        assert response.status_code == 201
        assert response.data['company'] == center.company_id
        assert response.data['roles'] == ['technician']
