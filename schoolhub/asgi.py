import os
from django.core.asgi import get_asgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'schoolhub.settings')

# Django must be set up before importing consumers or models
django_asgi_app = get_asgi_application()

from channels.routing import ProtocolTypeRouter, URLRouter  # noqa: E402
from notifications.queue import delivery_queue  # noqa: E402
from notifications.routing import websocket_urlpatterns  # noqa: E402
from .websocket_middleware import WebSocketJWTMiddleware  # noqa: E402


class DeliveryQueueLifespan:
    """
    Runs the delivery queue's tick task on the server's event loop.

    Servers that speak the lifespan protocol start and stop it explicitly;
    for the others the queue starts on the first connection.
    """

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope['type'] == 'lifespan':
            while True:
                message = await receive()
                if message['type'] == 'lifespan.startup':
                    delivery_queue.start()
                    await send({'type': 'lifespan.startup.complete'})
                elif message['type'] == 'lifespan.shutdown':
                    await delivery_queue.stop()
                    await send({'type': 'lifespan.shutdown.complete'})
                    return

        delivery_queue.start()
        return await self.app(scope, receive, send)


application = DeliveryQueueLifespan(ProtocolTypeRouter({
    "http": django_asgi_app,
    "websocket": WebSocketJWTMiddleware(
        URLRouter(websocket_urlpatterns)
    ),
}))
