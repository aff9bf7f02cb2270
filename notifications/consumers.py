import json
import logging
from channels.generic.websocket import AsyncWebsocketConsumer
from channels.db import database_sync_to_async
from django.core.serializers.json import DjangoJSONEncoder
from django.utils import timezone
from notifications import ledger
from notifications.gateway import gateway, user_room, tenant_room, role_room, room_group
from notifications.utils.exceptions import NotificationError

logger = logging.getLogger('notifications.consumers')


class NotificationConsumer(AsyncWebsocketConsumer):
    """
    WebSocket consumer for real-time in-app notifications.

    The handshake is authenticated by WebSocketJWTMiddleware, which leaves
    a SessionIdentity in ``scope['session']`` (or None). Every client event
    is answered on this connection; failures become ``error`` events and
    the socket stays open.
    """

    async def connect(self):
        self.identity = self.scope.get('session')
        self.rooms = set()
        if self.identity is None:
            logger.warning("WebSocket authentication failed")
            await self.close(code=4001)  # Unauthorized
            return

        self.user_id = self.identity.user_id
        self.tenant_id = self.identity.tenant_id
        await self.accept()

        try:
            gateway.register(
                self.user_id, self.tenant_id, self.identity.role, self.channel_name,
                branch_id=self.identity.branch_id,
            )
            await self.join_room(user_room(self.user_id))
            if self.tenant_id:
                await self.join_room(tenant_room(self.tenant_id))
            await self.join_room(role_room(self.identity.role))

            logger.info(f"WebSocket connected for user {self.user_id} in tenant {self.tenant_id}")
            await self.send_event('connected', {
                'message': 'Connected to notification service',
                'userId': self.user_id,
                'connectedAt': self.get_current_timestamp(),
            })
            await self.send_unread_count()
        except Exception as e:
            logger.error(f"WebSocket connection error for user {self.user_id}: {str(e)}")
            gateway.unregister(self.user_id, self.channel_name)
            await self.close(code=4000)  # Internal error

    async def disconnect(self, close_code):
        if getattr(self, 'identity', None) is None:
            return
        for room in list(self.rooms):
            await self.channel_layer.group_discard(room_group(room), self.channel_name)
        self.rooms.clear()
        gateway.unregister(self.user_id, self.channel_name)
        logger.info(f"WebSocket disconnected for user {self.user_id} (code {close_code})")

    async def join_room(self, room):
        await self.channel_layer.group_add(room_group(room), self.channel_name)
        self.rooms.add(room)

    async def send_event(self, event_type, payload=None):
        await self.send(text_data=json.dumps({'type': event_type, **(payload or {})}, cls=DjangoJSONEncoder))

    async def send_error(self, message, code=None):
        payload = {'message': message}
        if code:
            payload['code'] = code
        await self.send_event('error', payload)

    async def receive(self, text_data=None, bytes_data=None):
        """Handle incoming WebSocket messages"""
        try:
            data = json.loads(text_data or '')
        except json.JSONDecodeError:
            logger.error("Invalid JSON received")
            await self.send_error('Invalid JSON', code='INVALID_JSON')
            return
        if not isinstance(data, dict):
            await self.send_error('Events must be JSON objects', code='INVALID_EVENT')
            return

        event_type = data.get('type')
        handler = self.event_handlers.get(event_type)
        if handler is None:
            logger.warning(f"Unknown message type: {event_type}")
            await self.send_error(f"Unknown event: {event_type}", code='UNKNOWN_EVENT')
            return

        try:
            await handler(self, data)
        except NotificationError as e:
            await self.send_error(e.message, code=e.code)
        except Exception as e:
            logger.error(f"Error processing {event_type} for user {self.user_id}: {str(e)}")
            await self.send_error(f"Failed to process {event_type}")

    async def handle_subscribe_personal(self, data):
        await self.join_room(user_room(self.user_id))
        await self.send_event('subscribed', {'room': 'personal', 'userId': self.user_id})

    async def handle_subscribe_school(self, data):
        if not self.tenant_id:
            await self.send_error('No school associated with this session', code='SCHOOL_ID_REQUIRED')
            return
        await self.join_room(tenant_room(self.tenant_id))
        await self.send_event('subscribed', {'room': 'school', 'schoolId': self.tenant_id})

    async def handle_mark_read(self, data):
        delivery_id = data.get('deliveryId') or data.get('delivery_id')
        if not delivery_id:
            await self.send_error('deliveryId is required', code='VALIDATION_ERROR')
            return
        changed = await database_sync_to_async(ledger.record_read)(delivery_id, self.user_id)
        await self.send_event('marked:read', {'deliveryId': str(delivery_id), 'changed': changed})
        await self.send_unread_count()

    async def handle_get_unread_count(self, data):
        await self.send_unread_count()

    async def handle_typing(self, data):
        room = data.get('room')
        if room not in self.rooms:
            await self.send_error('Not a member of that room', code='INVALID_ROOM')
            return
        await self.channel_layer.group_send(room_group(room), {
            'type': 'typing.relay',
            'room': room,
            'userId': self.user_id,
            'typing': data.get('type') == 'typing:start',
            'sender': self.channel_name,
        })

    async def handle_ping(self, data):
        await self.send_event('pong', {'timestamp': self.get_current_timestamp()})

    event_handlers = {
        'subscribe:personal': handle_subscribe_personal,
        'subscribe:school': handle_subscribe_school,
        'mark:read': handle_mark_read,
        'get:unread-count': handle_get_unread_count,
        'typing:start': handle_typing,
        'typing:stop': handle_typing,
        'ping': handle_ping,
    }

    async def send_unread_count(self):
        try:
            count = await database_sync_to_async(ledger.unread_count)(self.user_id)
        except Exception as e:
            logger.error(f"Failed to get unread count for user {self.user_id}: {str(e)}")
            await self.send_error('Failed to get unread count')
            return
        await self.send_event('unread:count', {'count': count})

    # Channel layer handlers

    async def gateway_event(self, event):
        """Relay a gateway event (notification, announcement, ...) as-is"""
        await self.send(text_data=json.dumps(event['payload'], cls=DjangoJSONEncoder))

    async def typing_relay(self, event):
        if event.get('sender') == self.channel_name:
            return
        await self.send_event('user:typing', {
            'room': event['room'],
            'userId': event['userId'],
            'typing': event['typing'],
        })

    def get_current_timestamp(self):
        """Get current timestamp in ISO format"""
        return timezone.now().isoformat()
