"""
Tests for authentication and role gates.
"""
from django.test import TestCase
from rest_framework import status
from rest_framework.test import APIRequestFactory, APITestCase

from accounts.models import User
from accounts.permissions import DeleteRequiresAdminOrManager, IsAdminOrManager


class RoleTestCase(TestCase):

    def test_has_role(self):
        staff = User.objects.create_user('staff', password='pw')
        root = User.objects.create_superuser('root', password='pw', email='root@example.com')

        self.assertEqual(staff.role, User.Role.STAFF)
        self.assertTrue(staff.has_role(User.Role.STAFF))
        self.assertFalse(staff.has_role(User.Role.ADMIN, User.Role.MANAGER))
        self.assertTrue(root.has_role(User.Role.ADMIN))

    def test_role_permissions(self):
        factory = APIRequestFactory()
        staff = User.objects.create_user('staff', password='pw')
        manager = User.objects.create_user('manager', password='pw', role=User.Role.MANAGER)

        request = factory.delete('/')
        request.user = staff
        permission = DeleteRequiresAdminOrManager()
        self.assertFalse(permission.has_permission(request, None))
        self.assertIn('Your role: staff', permission.message)

        request.user = manager
        self.assertTrue(IsAdminOrManager().has_permission(request, None))

        request = factory.get('/')
        request.user = staff
        self.assertTrue(DeleteRequiresAdminOrManager().has_permission(request, None))


class AuthAPITestCase(APITestCase):

    def setUp(self):
        self.user = User.objects.create_user(
            'alice', password='s3cret-pass', email='alice@example.com',
            role=User.Role.MANAGER, department='Operations'
        )

    def test_token_obtain_and_me(self):
        response = self.client.post(
            '/api/auth/token/', {'username': 'alice', 'password': 's3cret-pass'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('refresh', response.data)

        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")
        response = self.client.get('/api/auth/me/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['role'], 'manager')
        self.assertEqual(response.data['data']['department'], 'Operations')

    def test_bad_credentials_use_error_envelope(self):
        response = self.client.post(
            '/api/auth/token/', {'username': 'alice', 'password': 'wrong'}, format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertFalse(response.data['success'])

    def test_invalid_token_rejected(self):
        self.client.credentials(HTTP_AUTHORIZATION='Bearer not-a-token')

        response = self.client.get('/api/auth/me/')

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertFalse(response.data['success'])

    def test_health_check_is_public(self):
        response = self.client.get('/health/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()['database'], 'ok')
