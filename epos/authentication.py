from rest_framework.authentication import BaseAuthentication
from rest_framework.exceptions import AuthenticationFailed
from django.conf import settings

from engine.actors import Actor


class APIKeyAuthentication(BaseAuthentication):
    """
    API key authentication using the X-API-Key header.

    The till sends the staff member it is acting for in X-Staff-Id and
    X-Staff-Role (plus optional comma separated X-Staff-Permissions grants);
    those become the Actor handed to the engine as request.user.
    """

    def authenticate(self, request):
        api_key = request.META.get('HTTP_X_API_KEY')

        if not api_key:
            return None

        expected_api_key = getattr(settings, 'API_KEY', 'demo')

        if api_key != expected_api_key:
            raise AuthenticationFailed('Invalid API key')

        staff_id = request.META.get('HTTP_X_STAFF_ID', '').strip() or 'anonymous'
        role = request.META.get('HTTP_X_STAFF_ROLE', '').strip().lower()
        extra = request.META.get('HTTP_X_STAFF_PERMISSIONS', '')
        actor = Actor.for_role(staff_id, role, [p.strip() for p in extra.split(',')])

        return (actor, api_key)

    def authenticate_header(self, request):
        return 'X-API-Key'
