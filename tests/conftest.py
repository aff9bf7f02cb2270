import pytest
from unittest.mock import MagicMock, patch

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer

from notifications.gateway import gateway
from notifications.orchestrator.dispatcher import Dispatcher
from notifications.queue import delivery_queue


def _reset():
    gateway.reset()
    delivery_queue.clear()
    Dispatcher.reset()
    async_to_sync(get_channel_layer().flush)()


@pytest.fixture(autouse=True)
def reset_pipeline_state():
    """The gateway registry, queue FIFO, handler map and channel layer are process-wide"""
    _reset()
    yield
    _reset()


@pytest.fixture
def mock_twilio_client():
    """Mock Twilio client for testing"""
    mock_client = MagicMock()
    mock_message = MagicMock()
    mock_message.sid = "SM1234567890"
    mock_message.status = "queued"
    mock_client.messages.create.return_value = mock_message

    with patch('notifications.channels.sms_handler.Client', return_value=mock_client):
        yield mock_client


@pytest.fixture
def mock_firebase_send():
    """Mock Firebase messaging send for testing"""
    with patch('notifications.channels.push_handler.messaging.send', return_value="projects/test/messages/1") as mock_send, \
            patch('notifications.channels.push_handler.PushHandler._get_firebase_app', return_value=MagicMock()):
        yield mock_send
