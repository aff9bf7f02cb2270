import logging
from django.http import JsonResponse
from notifications.services.session_service import verify_token, extract_bearer
from notifications.utils.exceptions import SessionRejected

logger = logging.getLogger('notifications.middleware')


class SessionTokenMiddleware:
    """
    Verifies the bearer token on API requests and exposes the session on the
    request as ``tenant_id``, ``user_id``, ``role``, ``branch_id`` and
    ``session_identity``. Requests without a valid token get a 401 before
    reaching any view.
    """
    PUBLIC_PATHS = (
        '/api/notifications/health/',
        '/api/schema/',
        '/api/docs/',
    )

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        request.session_identity = None
        request.tenant_id = None
        request.user_id = None
        request.role = None
        request.branch_id = None

        if not request.path.startswith('/api/') or request.path.startswith(self.PUBLIC_PATHS):
            return self.get_response(request)

        token = extract_bearer(request.headers.get('Authorization'))
        try:
            identity = verify_token(token)
        except SessionRejected as e:
            logger.warning(f"Rejected {request.method} {request.path}: {e.message}")
            return JsonResponse({'error': e.code, 'message': e.message}, status=e.http_status)

        request.session_identity = identity
        request.tenant_id = identity.tenant_id
        request.user_id = identity.user_id
        request.role = identity.role
        request.branch_id = identity.branch_id
        return self.get_response(request)
