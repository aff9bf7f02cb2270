import logging
import urllib.parse
from channels.db import database_sync_to_async
from notifications.services.session_service import verify_token, extract_bearer
from notifications.utils.exceptions import SessionRejected

logger = logging.getLogger('notifications.websocket')


class WebSocketJWTMiddleware:
    """
    WebSocket JWT authentication middleware.

    Reads the session token from the ``token`` query parameter or an
    ``Authorization: Bearer`` header and stores the verified identity in
    ``scope['session']``. Rejected handshakes get ``None``; the consumer
    closes those with 4001.
    """

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        token = self.get_token(scope)
        scope = dict(scope)
        scope['session'] = None

        if token:
            try:
                scope['session'] = await self.authenticate_token(token)
            except SessionRejected as e:
                logger.warning(f"WebSocket authentication failed: {e.message}")
        else:
            logger.warning("No token provided in WebSocket connection")

        return await self.app(scope, receive, send)

    def get_token(self, scope):
        query = urllib.parse.parse_qs(scope.get('query_string', b'').decode())
        if query.get('token'):
            return query['token'][0]
        headers = dict(scope.get('headers', []))
        return extract_bearer(headers.get(b'authorization'))

    @database_sync_to_async
    def authenticate_token(self, token):
        return verify_token(token)
