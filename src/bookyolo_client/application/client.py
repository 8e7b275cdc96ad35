"""Named backend operations built on the request engine.

Each method is one `execute` call; the endpoint path decides the timeout class
(question and comparison paths get the long class). All methods return an
`ApiResult` and never raise for backend or network failures.

Retries follow the engine's generic policy for every operation, including
login and other writes: a transport failure after the request reached the
server can therefore apply it twice. No idempotency keys are sent because the
backend does not accept any.
"""

from __future__ import annotations

from ..domain.outcomes import ApiResult
from ..protocols import RequestExecutor
from .session import SessionManager

RESEND_VERIFICATION_MESSAGE = "Please check your email for the verification link"


class BookYoloClient:
    """Catalogue of BookYolo backend calls."""

    def __init__(
        self,
        engine: RequestExecutor,
        sessions: SessionManager,
        *,
        app_source: str = "mobile",
    ) -> None:
        self.engine = engine
        self.sessions = sessions
        self.app_source = app_source

    def health_check(self) -> ApiResult:
        return self.engine.execute("/health")

    # Authentication

    def signup(
        self, first_name: str, email: str, password: str, confirm_password: str
    ) -> ApiResult:
        return self.engine.execute(
            "/auth/signup",
            "POST",
            {
                "firstName": first_name,
                "email": email,
                "password": password,
                "confirmPassword": confirm_password,
            },
            headers={"X-App-Source": self.app_source},
        )

    def track_referral_signup(self, referral_code: str, user_email: str, user_id: str) -> ApiResult:
        return self.engine.execute(
            "/referral/track-signup",
            "POST",
            {"referral_code": referral_code, "user_email": user_email, "user_id": user_id},
        )

    def login(self, email: str, password: str) -> ApiResult:
        """Log in and store the returned bearer token."""
        result = self.engine.execute("/auth/login", "POST", {"email": email, "password": password})
        data = result.data_as_dict()
        if data is not None:
            token = data.get("token")
            if isinstance(token, str) and token:
                self.sessions.set_token(token)
        return result

    def verify_email(self, token: str) -> ApiResult:
        return self.engine.execute("/auth/verify-email", "POST", {"token": token})

    def resend_verification_email(self, email: str) -> ApiResult:
        """Answer locally; the backend has no resend endpoint."""
        return ApiResult.success({"message": RESEND_VERIFICATION_MESSAGE})

    def request_password_reset(self, email: str) -> ApiResult:
        return self.engine.execute("/auth/password-reset", "POST", {"email": email})

    def confirm_password_reset(self, token: str, new_password: str) -> ApiResult:
        return self.engine.execute(
            "/auth/password-reset-confirm",
            "POST",
            {"token": token, "new_password": new_password},
        )

    def logout(self) -> ApiResult:
        self.sessions.clear_token()
        return ApiResult.success({"success": True})

    # Profile

    def get_current_user(self) -> ApiResult:
        return self.engine.execute("/me")

    def update_profile(
        self,
        *,
        full_name: str | None = None,
        email: str | None = None,
        new_password: str | None = None,
        confirm_password: str | None = None,
    ) -> ApiResult:
        body: dict[str, object] = {}
        if full_name is not None:
            body["full_name"] = full_name
        if email is not None:
            body["email"] = email
        if new_password:
            body["new_password"] = new_password
            body["confirm_password"] = confirm_password
        return self.engine.execute("/update-profile", "PUT", body)

    def delete_account(self, confirm_text: str) -> ApiResult:
        return self.engine.execute("/delete-account", "DELETE", {"confirm_text": confirm_text})

    # Referrals

    def get_referral_stats(self, user_id: str | None = None) -> ApiResult:
        if user_id:
            return self.engine.execute(f"/referral/stats/{user_id}")
        return self.engine.execute("/referral/stats")

    def get_referral_link(self) -> ApiResult:
        return self.engine.execute("/referral/link")

    # Scans and questions

    def scan_listing(self, listing_url: str) -> ApiResult:
        return self.engine.execute("/chat/new-scan", "POST", {"listing_url": listing_url})

    def ask_question(self, question: str | dict[str, object]) -> ApiResult:
        payload = {"question": question} if isinstance(question, str) else question
        return self.engine.execute("/question", "POST", payload)

    def ask_chat_question(self, chat_id: str, question: str) -> ApiResult:
        return self.engine.execute(f"/chat/{chat_id}/ask", "POST", {"question": question})

    def pre_scan_ask(self, question: str) -> ApiResult:
        return self.engine.execute("/chat/pre-scan/ask", "POST", {"question": question})

    def get_my_scans(self) -> ApiResult:
        return self.engine.execute("/my-scans")

    def get_scan_by_id(self, scan_id: str) -> ApiResult:
        return self.engine.execute(f"/scan/{scan_id}")

    def get_chats(self) -> ApiResult:
        return self.engine.execute("/chats")

    def get_chat(self, chat_id: str) -> ApiResult:
        return self.engine.execute(f"/chat/{chat_id}")

    # Comparisons

    def compare_listings(
        self, scan_a_url: str, scan_b_url: str, question: str | None = None
    ) -> ApiResult:
        return self.engine.execute(
            "/compare",
            "POST",
            {"scan_a_url": scan_a_url, "scan_b_url": scan_b_url, "question": question},
        )

    def save_compare(
        self, scan_a_url: str, scan_b_url: str, answer: str, question: str | None = None
    ) -> ApiResult:
        return self.engine.execute(
            "/save-compare",
            "POST",
            {
                "scan_a_url": scan_a_url,
                "scan_b_url": scan_b_url,
                "answer": answer,
                "question": question,
            },
        )

    # Payments

    def create_checkout_session(self, price_id: str = "premium_yearly") -> ApiResult:
        return self.engine.execute("/stripe/create-checkout", "POST", {"price_id": price_id})

    def verify_payment(self, session_id: str) -> ApiResult:
        return self.engine.execute("/stripe/verify-payment", "POST", {"session_id": session_id})

    def cancel_subscription(self) -> ApiResult:
        return self.engine.execute("/stripe/cancel-subscription", "POST")

    def reset_to_free_plan(self) -> ApiResult:
        return self.engine.execute("/stripe/reset-to-free", "POST")

    # Notifications and balance history

    def get_notifications(self) -> ApiResult:
        return self.engine.execute("/notifications")

    def mark_notification_as_read(self, notification_id: str) -> ApiResult:
        return self.engine.execute(f"/notifications/{notification_id}/read", "POST")

    def get_scan_balance_history(self) -> ApiResult:
        return self.engine.execute("/scan-balance/history")
