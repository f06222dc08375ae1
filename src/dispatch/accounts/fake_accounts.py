"""In-memory accounts adapter — records users for tests and local runs."""

from uuid import uuid4

from werkzeug.security import check_password_hash, generate_password_hash

from dispatch.accounts.port import AccountsPort
from dispatch.errors import Conflict, UpstreamFailure


class FakeAccounts(AccountsPort):
    def __init__(self):
        self.users: dict[str, dict] = {}
        self.should_succeed = True
        self.latency = 0.0

    def configure(self, should_succeed: bool = True, latency: float = 0.0):
        self.should_succeed = should_succeed
        self.latency = latency

    def _check_upstream(self, timeout: float | None) -> None:
        if not self.should_succeed:
            raise UpstreamFailure("Identity service unavailable")
        if timeout is not None and self.latency > timeout:
            raise UpstreamFailure("Identity service timed out")

    def add_user(self, name: str, email: str, phone: str | None = None, role: str = "user", user_id: str | None = None) -> str:
        user_id = user_id or f"user-{uuid4().hex[:8]}"
        self.users[user_id] = {
            "user_id": user_id,
            "name": name,
            "email": email,
            "phone": phone,
            "role": role,
            "password_hash": None,
        }
        return user_id

    def find_by_id(self, user_id, timeout=None):
        self._check_upstream(timeout)
        user = self.users.get(user_id)
        if user is None:
            return None
        return {k: v for k, v in user.items() if k != "password_hash"}

    def create_placeholder_account(self, profile, password, timeout=None):
        self._check_upstream(timeout)
        email = profile["email"].lower()
        if any(u["email"] == email for u in self.users.values()):
            raise Conflict(f"An account already exists for {email}")
        user_id = self.add_user(name=profile["name"], email=email, phone=profile.get("phone"))
        self.users[user_id]["password_hash"] = generate_password_hash(password)
        return user_id

    def check_password(self, user_id: str, password: str) -> bool:
        password_hash = self.users[user_id]["password_hash"]
        return bool(password_hash) and check_password_hash(password_hash, password)

    def reset(self):
        self.users.clear()
        self.should_succeed = True
        self.latency = 0.0
