"""
User profile API tests

Users only see their own profile; activating a plan requires every
exercise in it to have a progression.
"""

import pytest
from uuid import uuid4

from core.security import create_access_token


@pytest.fixture
def plan_without_progressions(user_id, make_exercise, make_plan):
    return make_plan(user_id, [[(make_exercise("Back Squat"), [(5, 100)])]])


class TestProfileAccess:
    """Own profile only"""

    def test_missing_profile_is_404(self, client, auth_headers, user_id):
        response = client.get(f"/v1/user-profiles/{user_id}", headers=auth_headers)
        assert response.status_code == 404

    def test_create_then_read(self, client, auth_headers, user_id):
        response = client.put(f"/v1/user-profiles/{user_id}", json={"first_name": "Sam"}, headers=auth_headers)
        assert response.status_code == 200
        assert response.json() == {"id": str(user_id), "first_name": "Sam", "active_plan_id": None}

        response = client.get(f"/v1/user-profiles/{user_id}", headers=auth_headers)
        assert response.json()["first_name"] == "Sam"

    def test_other_users_profile_is_forbidden(self, client, other_auth_headers, user_id):
        assert client.get(f"/v1/user-profiles/{user_id}", headers=other_auth_headers).status_code == 403
        response = client.put(f"/v1/user-profiles/{user_id}", json={"first_name": "X"}, headers=other_auth_headers)
        assert response.status_code == 403


class TestPlanActivation:
    """active_plan_id goes through the activation check"""

    def test_plan_without_progressions_is_rejected(self, client, auth_headers, user_id, plan_without_progressions):
        response = client.put(
            f"/v1/user-profiles/{user_id}",
            json={"first_name": "Sam", "active_plan_id": str(plan_without_progressions.id)},
            headers=auth_headers,
        )

        assert response.status_code == 400
        body = response.json()
        assert body["error_code"] == "PLAN_ACTIVATION_ERROR"
        assert len(body["context"]["missing_exercise_ids"]) == 1
        assert client.get(f"/v1/user-profiles/{user_id}", headers=auth_headers).status_code == 404

    def test_configured_plan_is_activated(self, client, auth_headers, user_id, plan_without_progressions, make_progression):
        squat = plan_without_progressions.days[0].exercises[0].exercise
        make_progression(plan_without_progressions, squat)

        response = client.put(
            f"/v1/user-profiles/{user_id}",
            json={"active_plan_id": str(plan_without_progressions.id)},
            headers=auth_headers,
        )

        assert response.status_code == 200
        assert response.json()["active_plan_id"] == str(plan_without_progressions.id)

    def test_foreign_plan_cannot_be_activated(self, client, plan_without_progressions):
        stranger = uuid4()
        headers = {"Authorization": f"Bearer {create_access_token(data={'sub': str(stranger)})}"}

        response = client.put(
            f"/v1/user-profiles/{stranger}",
            json={"active_plan_id": str(plan_without_progressions.id)},
            headers=headers,
        )

        assert response.status_code == 400
        assert response.json()["error_code"] == "PLAN_ACTIVATION_ERROR"

    def test_clearing_the_active_plan(self, client, auth_headers, user_id):
        client.put(f"/v1/user-profiles/{user_id}", json={"first_name": "Sam"}, headers=auth_headers)

        response = client.put(f"/v1/user-profiles/{user_id}", json={"active_plan_id": None}, headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["active_plan_id"] is None
