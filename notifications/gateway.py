"""
Realtime gateway.

Keeps the per-process registry of connected users and fans events out to
logical rooms through the channel layer. Rooms are ``user:<id>``,
``tenant:<id>`` and ``role:<role>``; channel-layer group names cannot hold
``:`` so each room maps to a group with ``.`` in its place.
"""
from channels.layers import get_channel_layer
from django.utils import timezone
import logging
import threading

logger = logging.getLogger('notifications.gateway')

GATEWAY_EVENT = 'gateway.event'


def user_room(user_id):
    return f"user:{user_id}"


def tenant_room(tenant_id):
    return f"tenant:{tenant_id}"


def role_room(role):
    return f"role:{role}"


def room_group(room):
    return room.replace(':', '.')


def _timestamp():
    return timezone.now().isoformat()


class RealtimeGateway:
    def __init__(self):
        self._connections = {}
        # Registry is written on the event loop and read by request threads for stats
        self._lock = threading.Lock()

    # Registry

    def register(self, user_id, tenant_id, role, channel_name, branch_id=None):
        """Track ``channel_name`` as the user's connection; returns the superseded channel, if any."""
        entry = {
            'user_id': str(user_id),
            'tenant_id': str(tenant_id) if tenant_id else None,
            'branch_id': str(branch_id) if branch_id else None,
            'role': role,
            'channel_name': channel_name,
            'connected_at': _timestamp(),
        }
        with self._lock:
            previous = self._connections.get(str(user_id))
            self._connections[str(user_id)] = entry
        if previous and previous['channel_name'] != channel_name:
            logger.info(f"Connection for user {user_id} superseded {previous['channel_name']}")
            return previous['channel_name']
        return None

    def unregister(self, user_id, channel_name):
        """Drop the entry only if it still belongs to ``channel_name``."""
        with self._lock:
            entry = self._connections.get(str(user_id))
            if entry and entry['channel_name'] == channel_name:
                del self._connections[str(user_id)]
                return True
        return False

    def is_connected(self, user_id):
        with self._lock:
            return str(user_id) in self._connections

    def connected_user_count(self):
        with self._lock:
            return len(self._connections)

    def connected_users(self, tenant_id=None):
        with self._lock:
            entries = [dict(entry) for entry in self._connections.values()]
        if tenant_id is not None:
            entries = [entry for entry in entries if entry['tenant_id'] == str(tenant_id)]
        return entries

    def reset(self):
        with self._lock:
            self._connections.clear()

    # Fan-out

    async def _emit(self, room, payload):
        channel_layer = get_channel_layer()
        await channel_layer.group_send(room_group(room), {'type': GATEWAY_EVENT, 'payload': payload})

    async def send_to_user(self, user_id, payload, event='notification') -> bool:
        """
        Push ``payload`` to the user's personal room.

        Returns whether the user is connected to this process. The event is
        published either way so a connection held by another server still
        receives it.
        """
        connected = self.is_connected(user_id)
        try:
            await self._emit(user_room(user_id), {'type': event, **payload, 'timestamp': _timestamp()})
        except Exception as e:
            logger.error(f"Failed to push {event} to user {user_id}: {str(e)}")
            return False
        if connected:
            logger.info(f"Realtime {event} sent to user {user_id}: {payload.get('title', '')}")
        else:
            logger.warning(f"User {user_id} not connected for realtime {event}")
        return connected

    async def send_to_tenant(self, tenant_id, payload, event='notification'):
        try:
            await self._emit(tenant_room(tenant_id), {'type': event, **payload, 'timestamp': _timestamp()})
            logger.info(f"Tenant-wide {event} sent to {tenant_id}: {payload.get('title', '')}")
        except Exception as e:
            logger.error(f"Tenant broadcast to {tenant_id} failed: {str(e)}")

    async def send_to_role(self, role, payload, event='notification'):
        try:
            await self._emit(role_room(role), {'type': event, **payload, 'timestamp': _timestamp()})
            logger.info(f"Role-wide {event} sent to {role}: {payload.get('title', '')}")
        except Exception as e:
            logger.error(f"Role broadcast to {role} failed: {str(e)}")

    async def send_to_users(self, user_ids, payload):
        sent = 0
        for user_id in user_ids:
            if await self.send_to_user(user_id, payload):
                sent += 1
        logger.info(f"Notification sent to {sent}/{len(user_ids)} connected users")
        return sent

    async def broadcast_announcement(self, tenant_id, payload):
        await self.send_to_tenant(tenant_id, payload, event='announcement')


gateway = RealtimeGateway()
