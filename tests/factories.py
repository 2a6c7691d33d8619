"""
Test data builders shared by the test modules
"""
import json
from typing import Any, Dict, List, Optional

import httpx

EMAIL_API_URL = "https://email.test/v1/send"

FATIMA_WALI = json.dumps({
    "name": "Abdullah",
    "email": "abdullah.wali@example.com",
    "phone": "+2348000000000",
    "relationship": "father",
})


class EmailRecorder:
    """httpx MockTransport handler that records every email API call."""

    def __init__(self):
        self.calls: List[Dict[str, Any]] = []
        self.headers: List[httpx.Headers] = []
        self.fail_with: Optional[int] = None
        self.network_down = False

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(json.loads(request.content))
        self.headers.append(request.headers)
        if self.network_down:
            raise httpx.ConnectError("connection refused", request=request)
        if self.fail_with is not None:
            return httpx.Response(self.fail_with, json={"error": "failed"})
        return httpx.Response(200, json={"id": f"msg-{len(self.calls)}"})

    @property
    def recipients(self) -> List[str]:
        return [call["to"] for call in self.calls]

    def subjects(self) -> List[str]:
        return [call["subject"] for call in self.calls]


def make_user(
    user_id: str,
    gender: str = "male",
    plan: Optional[str] = "freemium",
    wali: Any = None,
    parent_email: Optional[str] = None,
    **extra: Any,
) -> Dict[str, Any]:
    doc = {
        "_id": user_id,
        "username": user_id,
        "fname": user_id.capitalize(),
        "lname": "Test",
        "email": f"{user_id}@example.com",
        "gender": gender,
        "plan": plan,
        "waliDetails": wali,
        "parentEmail": parent_email,
        "blockedUsers": [],
        "favoriteUsers": [],
        "viewedBy": [],
    }
    doc.update(extra)
    return doc
