"""WebSocket relay: streams navigation events out and accepts pushed fixes."""

import asyncio
import json
import queue
import threading
import time
from typing import Optional

import websockets

from .models import NavigationEvent, Position


class EventRelay:
    """WebSocket server broadcasting session events to connected clients.

    Clients may also push fixes with
    {"type": "location", "data": {"lat": ..., "lon": ..., "accuracy": ...}},
    which WebSocketGPS hands to the navigator.
    """

    def __init__(self, host: str = "localhost", port: int = 8765):
        self.host = host
        self.port = port
        self.connected_clients = set()
        self.location_queue: queue.Queue = queue.Queue()
        self.ws_loop: Optional[asyncio.AbstractEventLoop] = None
        self.ws_thread: Optional[threading.Thread] = None
        self._running = False

    def start(self):
        """Start the WebSocket server on a background thread"""
        self._running = True
        self.ws_thread = threading.Thread(target=self._run_ws_server, daemon=True)
        self.ws_thread.start()
        print(f"Event relay listening on ws://{self.host}:{self.port}")

    def _run_ws_server(self):
        self.ws_loop = asyncio.new_event_loop()
        asyncio.set_event_loop(self.ws_loop)

        async def handler(websocket):
            self.connected_clients.add(websocket)
            try:
                async for message in websocket:
                    self.handle_message(message)
            finally:
                self.connected_clients.discard(websocket)

        async def main():
            try:
                async with websockets.serve(handler, self.host, self.port):
                    while self._running:
                        await asyncio.sleep(0.1)
            except OSError as e:
                print(f"WebSocket server error: {e}")

        self.ws_loop.run_until_complete(main())

    def handle_message(self, message: str) -> bool:
        """Queue a pushed location message. Returns True if one was accepted."""
        try:
            data = json.loads(message)
        except json.JSONDecodeError:
            return False
        if not isinstance(data, dict) or data.get("type") != "location":
            return False
        loc_data = data.get("data") or {}
        try:
            location = Position(
                lat=float(loc_data["lat"]),
                lon=float(loc_data["lon"]),
                accuracy=loc_data.get("accuracy"),
                speed=loc_data.get("speed"),
                course=loc_data.get("course"),
                timestamp=loc_data.get("timestamp") or time.time(),
            )
        except (KeyError, TypeError, ValueError):
            return False
        self.location_queue.put(location)
        return True

    def _send_message(self, msg_type: str, data):
        """Send a message to all connected WebSocket clients"""
        if not self.connected_clients or not self.ws_loop:
            return

        message = json.dumps({"type": msg_type, "data": data}, default=str)

        async def send_to_all():
            for client in list(self.connected_clients):
                try:
                    await client.send(message)
                except websockets.ConnectionClosed:
                    self.connected_clients.discard(client)

        asyncio.run_coroutine_threadsafe(send_to_all(), self.ws_loop)

    def notify(self, event: NavigationEvent):
        """Notification sink interface: broadcast the event"""
        self.send_event(event)

    def send_event(self, event: NavigationEvent):
        self._send_message("event", event.to_dict())

    def send_log(self, message: str, data: Optional[dict] = None):
        self._send_message("log", {"message": message, "data": data})

    def send_audio(self, text: str):
        self._send_message("audio", {"text": text})

    def get_pushed_location(self, timeout: float = 30) -> Optional[Position]:
        """Block until a client pushes a location, return it"""
        try:
            return self.location_queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def stop(self):
        self._running = False


class WebSocketGPS:
    """Position provider fed by fixes pushed through the relay"""

    def __init__(self, relay: EventRelay):
        self.relay = relay
        self.last_location: Optional[Position] = None
        self.consecutive_failures = 0

    def get_location(self, timeout: int = 30) -> Optional[Position]:
        location = self.relay.get_pushed_location(timeout=timeout)
        if location:
            self.last_location = location
            self.consecutive_failures = 0
            return location
        else:
            self.consecutive_failures += 1
            return None

    def get_status(self) -> str:
        return "Relay (waiting for pushed locations)"
