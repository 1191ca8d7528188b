import random
import string
from typing import Any, Dict, List

from app.core.security import create_access_token
from app.services.push_provider import PushBatchResult, PushProvider, PushSendResult


def random_str(prefix=""):
    return f"{prefix}{''.join(random.choices(string.ascii_lowercase + string.digits, k=6))}"


def auth_headers(user_id, role, college_id="GBU"):
    token = create_access_token(user_id, data={"role": role, "college_id": college_id})
    return {"Authorization": f"Bearer {token}"}


class FakeWebSocket:
    """Collects whatever the hub sends."""

    def __init__(self, fail=False):
        self.sent: List[Dict[str, Any]] = []
        self.fail = fail

    async def send_json(self, message):
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(message)

    def events(self):
        return [m["event"] for m in self.sent]


class FakePushProvider(PushProvider):
    enabled = True

    def __init__(self, invalid_tokens=()):
        self.invalid_tokens = set(invalid_tokens)
        self.calls: List[Dict[str, Any]] = []

    def send_one(self, token, title, body, data=None):
        self.calls.append({"token": token, "title": title, "body": body, "data": data})
        if token in self.invalid_tokens:
            return PushSendResult(success=False, invalid_token=True, error="unregistered")
        return PushSendResult(success=True, message_id=f"msg-{token}")

    def send_batch(self, tokens, title, body, data=None):
        results = [self.send_one(t, title, body, data) for t in tokens]
        ok = sum(1 for r in results if r.success)
        return PushBatchResult(success_count=ok, failure_count=len(results) - ok, results=results)


class FakeRedis:
    """The two commands the registration queue uses, with SET NX semantics."""

    def __init__(self):
        self.store: Dict[str, str] = {}

    async def set(self, key, value, nx=False, ex=None):
        if nx and key in self.store:
            return None
        self.store[key] = value
        return True

    async def delete(self, key):
        return 1 if self.store.pop(key, None) is not None else 0


class FakeTask:
    """Stands in for the Celery task; records published jobs."""

    def __init__(self, fail=False):
        self.published: List[Dict[str, Any]] = []
        self.fail = fail

    def apply_async(self, args=None, task_id=None):
        if self.fail:
            raise ConnectionError("broker down")
        self.published.append({"args": args, "task_id": task_id})


