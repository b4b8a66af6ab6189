import pytest
import json

from vdrive.schemas.address import PathAddress
from vdrive.schemas.events import OperationFailed
from vdrive.schemas.filesystem import NavigationState, NavigationStatus
from vdrive.websocket import ConnectionManager


class MockWebSocket:
    def __init__(self):
        self.accepted = False
        self.sent_messages = []

    async def accept(self):
        self.accepted = True

    async def send_text(self, message: str):
        self.sent_messages.append(message)


class FailingWebSocket:
    async def send_text(self, message: str):
        raise RuntimeError("Connection failed")


@pytest.fixture
def manager():
    """Fresh connection manager for each test"""
    return ConnectionManager()


def test_connection_manager_starts_empty(manager):
    assert len(manager.active_connections) == 0


@pytest.mark.asyncio
async def test_connection_manager_connect(manager):
    """Test connecting accepts and stores the WebSocket"""
    mock_ws = MockWebSocket()

    await manager.connect(mock_ws)

    assert mock_ws.accepted
    assert manager.active_connections == [mock_ws]


@pytest.mark.asyncio
async def test_connection_manager_broadcast(manager):
    """Test ConnectionManager can broadcast messages"""
    mock_ws = MockWebSocket()
    manager.active_connections.append(mock_ws)

    await manager.broadcast("test_type", {"key": "value"})

    assert len(mock_ws.sent_messages) == 1
    sent_data = json.loads(mock_ws.sent_messages[0])
    assert sent_data["type"] == "test_type"
    assert sent_data["data"]["key"] == "value"


@pytest.mark.asyncio
async def test_broadcast_serializes_models(manager):
    """Test models go out in their JSON form, addresses rendered"""
    mock_ws = MockWebSocket()
    manager.active_connections.append(mock_ws)
    state = NavigationState(
        status=NavigationStatus.LOADING,
        location=PathAddress.parse("HardDrive::a/b"),
    )

    await manager.broadcast("navigation", state)

    sent_data = json.loads(mock_ws.sent_messages[0])
    assert sent_data["data"]["status"] == "loading"
    assert sent_data["data"]["location"] == "HardDrive::a/b/"


@pytest.mark.asyncio
async def test_send_to_one_client(manager):
    """Test send reaches only the given client"""
    first, second = MockWebSocket(), MockWebSocket()
    manager.active_connections.extend([first, second])
    failed = OperationFailed(
        operation="rename",
        error="NameCollision",
        message="taken",
        location="BrowserCache::",
        entry_id="e1",
    )

    await manager.send(first, "operation_failed", failed)

    assert len(first.sent_messages) == 1
    assert second.sent_messages == []
    assert json.loads(first.sent_messages[0])["data"]["entry_id"] == "e1"


@pytest.mark.asyncio
async def test_connection_manager_removes_failed_connections(manager):
    """Test that failed connections are removed from the list"""
    healthy = MockWebSocket()
    manager.active_connections.extend([FailingWebSocket(), healthy])

    await manager.broadcast("test_type", {"key": "value"})

    assert manager.active_connections == [healthy]
    assert len(healthy.sent_messages) == 1


def test_connection_manager_disconnect(manager):
    """Test that disconnect removes connection"""
    mock_ws = MockWebSocket()
    manager.active_connections.append(mock_ws)

    manager.disconnect(mock_ws)
    assert len(manager.active_connections) == 0


def test_disconnect_unknown_connection(manager):
    """Test disconnecting twice is harmless"""
    manager.disconnect(MockWebSocket())

    assert manager.active_connections == []
