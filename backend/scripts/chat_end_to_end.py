"""End-to-end smoke test for chat rooms and live message relay.

Prerequisites:
1. `daphne rideshare_backend.asgi:application` (or `python manage.py runserver`
   with daphne installed) must be running.
2. Install dependencies once: `pip install -e ".[dev]"`.

The script will:
- Ensure two demo students exist (auto-register if missing).
- Log them in via the REST API and open the chat room they share.
- Connect the second student to the chat WebSocket and join the room.
- Send a message over REST as the first student and wait for the WS payload.
- Check that the live payload matches the stored history entry.
"""

from __future__ import annotations

import json
import os
import queue
import threading
import time
from typing import Dict

import requests
import websocket  # type: ignore

BASE_URL = os.environ.get("RIDESHARE_BASE_URL", "http://127.0.0.1:8000")
API_ROOT = f"{BASE_URL}/api"
AUTH_API = f"{API_ROOT}/auth"
CHATS_API = f"{API_ROOT}/chats"

SENDER_CREDS = {
    "username": "chat_demo_sender",
    "password": "demo-pass-1234",
    "email": "chat_demo_sender@example.edu",
}

RECEIVER_CREDS = {
    "username": "chat_demo_receiver",
    "password": "demo-pass-1234",
    "email": "chat_demo_receiver@example.edu",
}


def _login_or_register(session: requests.Session, payload: Dict) -> Dict:
    credentials = {"email": payload["email"], "password": payload["password"]}
    login_resp = session.post(f"{AUTH_API}/login/", json=credentials, timeout=10)

    if login_resp.status_code != 200:
        reg_resp = session.post(f"{AUTH_API}/register/", json=payload, timeout=10)
        reg_resp.raise_for_status()
        login_resp = session.post(f"{AUTH_API}/login/", json=credentials, timeout=10)

    login_resp.raise_for_status()
    data = login_resp.json()
    data["user"]["access"] = data["tokens"]["access"]
    session.headers.update({"Authorization": f"Bearer {data['tokens']['access']}"})
    return data["user"]


def _open_chat(session: requests.Session, other_user_id: int) -> int:
    resp = session.post(f"{CHATS_API}/", json={"other_user_id": other_user_id}, timeout=10)
    resp.raise_for_status()
    data = resp.json()
    print(f"[HTTP] Chat #{data['id']} ({'existing' if data['exists'] else 'new'})")
    return data["id"]


def _open_receiver_socket(token: str, chat_id: int, ready_evt: threading.Event, queue_out: queue.Queue) -> None:
    ws_url = BASE_URL.replace("http", "ws") + f"/ws/chat/?token={token}"

    def on_open(ws):  # type: ignore[no-untyped-def]
        print("[WS] Connected to chat channel")
        ws.send(json.dumps({"type": "join_chat", "chat_id": chat_id}))

    def on_message(ws, message):  # type: ignore[no-untyped-def]
        payload = json.loads(message)
        print(f"[WS] Received payload: {payload}")
        if payload.get("type") == "chat_joined":
            ready_evt.set()
        elif payload.get("type") == "new_message":
            queue_out.put(payload["message"])
            ws.close()

    def on_error(ws, error):  # type: ignore[no-untyped-def]
        print(f"[WS] Error: {error}")
        ready_evt.set()

    def on_close(_ws, *_):  # type: ignore[no-untyped-def]
        print("[WS] Connection closed")

    ws_app = websocket.WebSocketApp(
        ws_url,
        on_open=on_open,
        on_message=on_message,
        on_error=on_error,
        on_close=on_close,
    )

    ws_app.run_forever()


def main() -> None:
    sender_session = requests.Session()
    receiver_session = requests.Session()

    print("[HTTP] Logging in / registering demo accounts ...")
    sender = _login_or_register(sender_session, SENDER_CREDS)
    receiver = _login_or_register(receiver_session, RECEIVER_CREDS)
    print(f"[HTTP] Sender #{sender['id']} + Receiver #{receiver['id']} ready")

    chat_id = _open_chat(sender_session, receiver["id"])

    ready_evt = threading.Event()
    message_queue: queue.Queue = queue.Queue()
    ws_thread = threading.Thread(
        target=_open_receiver_socket,
        args=(receiver["access"], chat_id, ready_evt, message_queue),
        daemon=True,
    )
    ws_thread.start()

    if not ready_evt.wait(timeout=5):
        raise TimeoutError("Receiver WebSocket failed to join the chat within 5 seconds")

    text = f"hello at {time.strftime('%H:%M:%S')}"
    resp = sender_session.post(f"{CHATS_API}/{chat_id}/messages/", json={"content": text}, timeout=10)
    resp.raise_for_status()
    sent = resp.json()["message"]

    try:
        live = message_queue.get(timeout=15)
    except queue.Empty:
        raise TimeoutError("Receiver WebSocket did not get the message within 15 seconds")

    if live != sent:
        raise AssertionError(f"Live payload {live} differs from stored message {sent}")

    history = receiver_session.get(f"{CHATS_API}/{chat_id}/messages/", timeout=10).json()["messages"]
    if history[-1]["id"] != sent["id"]:
        raise AssertionError("Sent message is not the latest entry in history")

    print(f"[RESULT] Message #{sent['id']} delivered live and stored in history")
    print("[DONE] End-to-end chat check completed.")


if __name__ == "__main__":
    main()
