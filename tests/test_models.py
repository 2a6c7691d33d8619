import pytest

from quluub.models.plan import Plan, get_plan_limits
from quluub.models.relationship import (
    Relationship,
    RelationshipStatus,
    is_valid_transition,
    make_pair_key,
)
from quluub.models.user import User, WaliState, parse_wali_details
from quluub.services.compliance_notifier import report_milestone
from quluub.utils.time_utils import format_call_duration
from quluub.utils.validation_utils import count_words, normalize_email

from tests.factories import FATIMA_WALI, make_user


class TestWaliParsing:

    @pytest.mark.parametrize("raw", [None, "", {}, "{}", "null"])
    def test_absent(self, raw):
        state, details = parse_wali_details(raw)
        assert state == WaliState.ABSENT
        assert details is None

    def test_legacy_json_string(self):
        state, details = parse_wali_details(FATIMA_WALI)
        assert state == WaliState.PRESENT
        assert details.email == "abdullah.wali@example.com"
        assert details.has_valid_email

    def test_embedded_object_without_email(self):
        state, details = parse_wali_details({"name": "Umar"})
        assert state == WaliState.PRESENT
        assert details.email is None
        assert not details.has_valid_email

    @pytest.mark.parametrize("raw", ["{not valid json", "[1, 2]", 42, {"email": 5}])
    def test_malformed(self, raw):
        state, details = parse_wali_details(raw)
        assert state == WaliState.MALFORMED
        assert details is None


class TestUser:

    def test_parses_guardian_record_once(self):
        user = User.model_validate(make_user("fatima", gender="female", wali=FATIMA_WALI))
        assert user.is_female
        assert user.wali_state == WaliState.PRESENT.value
        assert user.wali_details.name == "Abdullah"

    def test_unknown_gender_and_plan(self):
        user = User.model_validate(make_user("x", gender="unknown", plan=None))
        assert user.gender is None
        assert user.plan == Plan.FREEMIUM.value
        assert user.opposite_gender() is None

    def test_guardian_emails_for_woman(self):
        user = User.model_validate(
            make_user("fatima", gender="female", wali=FATIMA_WALI, parent_email="Mother@Example.com")
        )
        assert user.guardian_emails() == ["mother@example.com", "abdullah.wali@example.com"]

    def test_parent_email_equal_to_own_is_skipped(self):
        user = User.model_validate(make_user("ahmed", parent_email="AHMED@example.com"))
        assert user.guardian_emails() == []

    def test_wali_ignored_for_men(self):
        user = User.model_validate(make_user("ahmed", wali={"email": "wali@example.com"}))
        assert user.guardian_emails() == []

    def test_to_document_round_trips_wali(self):
        user = User.model_validate(make_user("fatima", gender="female", wali=FATIMA_WALI))
        doc = user.to_document()
        assert doc["_id"] == "fatima"
        assert doc["waliDetails"]["email"] == "abdullah.wali@example.com"
        assert "waliState" not in doc


class TestRelationship:

    def test_pair_key_is_direction_independent(self):
        assert make_pair_key("a", "b") == make_pair_key("b", "a")

    def test_pair_key_filled_from_parties(self):
        relationship = Relationship(follower_user_id="zed", followed_user_id="amy")
        assert relationship.pair_key == "amy:zed"
        assert relationship.status == RelationshipStatus.PENDING.value
        assert relationship.counterpart("zed") == "amy"

    @pytest.mark.parametrize("from_status,to_status,allowed", [
        ("pending", "matched", True),
        ("pending", "rejected", True),
        ("matched", "rejected", False),
        ("rejected", "matched", False),
        ("matched", "pending", False),
    ])
    def test_transitions(self, from_status, to_status, allowed):
        assert is_valid_transition(from_status, to_status) is allowed


class TestPlans:

    def test_freemium_limits(self):
        limits = get_plan_limits("freemium")
        assert (limits.allowance, limits.word_limit, limits.video_call) == (10, 20, False)

    def test_pro_mirrors_premium(self):
        assert get_plan_limits("pro").allowance == get_plan_limits("premium").allowance == 50
        assert get_plan_limits("pro").video_call

    @pytest.mark.parametrize("plan", [None, "", "gold"])
    def test_unknown_plan_falls_back_to_freemium(self, plan):
        assert get_plan_limits(plan).name == Plan.FREEMIUM


def test_count_words_splits_on_single_spaces():
    assert count_words("one two three") == 3
    assert count_words("one  two") == 3


def test_normalize_email():
    assert normalize_email("  Wali@Example.COM ") == "wali@example.com"
    assert normalize_email("   ") is None


@pytest.mark.parametrize("seconds,expected", [(0, "0:00"), (59, "0:59"), (125, "2:05"), (None, "0:00")])
def test_format_call_duration(seconds, expected):
    assert format_call_duration(seconds) == expected


@pytest.mark.parametrize("count,milestone", [(1, 0), (4, 0), (5, 5), (9, 5), (10, 10), (14, 10)])
def test_report_milestone(count, milestone):
    assert report_milestone(count, 5) == milestone
