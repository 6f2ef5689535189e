"""
Unit tests for IdentityMiddleware and QueryCountMiddleware.
"""
import json
from unittest.mock import Mock

from django.contrib.auth.models import AnonymousUser, User
from django.http import HttpResponse
from django.test import RequestFactory, TestCase, override_settings

from splits.middleware import IdentityMiddleware, QueryCountMiddleware

from .helpers import ALICE_DEVICE


class IdentityMiddlewareTest(TestCase):
    def setUp(self):
        self.factory = RequestFactory()
        self.middleware = IdentityMiddleware(lambda request: Mock())

    def process(self, request, user=None):
        request.user = user or AnonymousUser()
        self.middleware(request)
        return request.identity

    def test_guest_from_header(self):
        request = self.factory.get('/', HTTP_X_GUEST_DEVICE_ID=ALICE_DEVICE.upper(),
                                   HTTP_X_DISPLAY_NAME='Alice')
        identity = self.process(request)
        self.assertEqual(identity.participant_key, f'guest:{ALICE_DEVICE}')
        self.assertEqual(identity.display_name, 'Alice')

    def test_guest_from_json_body(self):
        request = self.factory.post(
            '/', data=json.dumps({'guestDeviceId': ALICE_DEVICE}), content_type='application/json'
        )
        self.assertEqual(self.process(request).guest_device_id, ALICE_DEVICE)
        # The view can still read the body afterwards
        self.assertEqual(json.loads(request.body)['guestDeviceId'], ALICE_DEVICE)

    def test_guest_from_query(self):
        request = self.factory.get('/', {'guestDeviceId': ALICE_DEVICE})
        self.assertEqual(self.process(request).guest_device_id, ALICE_DEVICE)

    def test_no_identity(self):
        self.assertIsNone(self.process(self.factory.get('/')))
        self.assertIsNone(self.process(self.factory.get('/', HTTP_X_GUEST_DEVICE_ID='nope')))
        bad_body = self.factory.post('/', data='{bad', content_type='application/json')
        self.assertIsNone(self.process(bad_body))

    def test_authenticated_user_wins(self):
        user = User.objects.create_user('sam', password='pw', first_name='Sam', last_name='Lee')
        request = self.factory.get('/', HTTP_X_GUEST_DEVICE_ID=ALICE_DEVICE)

        identity = self.process(request, user=user)

        self.assertEqual(identity.participant_key, f'auth:{user.pk}')
        self.assertEqual(identity.display_name, 'Sam Lee')
        self.assertIsNone(identity.guest_device_id)


class QueryCountMiddlewareTest(TestCase):
    def setUp(self):
        self.factory = RequestFactory()

    def test_no_headers_outside_debug(self):
        middleware = QueryCountMiddleware(lambda request: HttpResponse('ok'))
        response = middleware(self.factory.get('/'))
        self.assertFalse(response.has_header('X-Query-Count'))

    @override_settings(DEBUG=True)
    def test_headers_in_debug(self):
        def view(request):
            User.objects.count()
            return HttpResponse('ok')

        response = QueryCountMiddleware(view)(self.factory.get('/'))

        self.assertEqual(response['X-Query-Count'], '1')
        self.assertIn('X-Response-Time-Ms', response)
