"""Unit tests for the matching engine.

Tests the predicate evaluator for:
- Each field rule and its "no constraint" default
- Leniency toward unspecified posting fields
- AND semantics for skills and languages
- The open-ended experience ceiling
- evaluate() failure reporting
- AlertMatcher collection matching and owner deduplication
"""

import pytest

from job_alerts.domain.models import AlertPredicate, JobPosting
from job_alerts.matching import AlertMatcher, MatchResult, distinct_owners, evaluate, matches
from tests.helpers import make_alert, make_posting


@pytest.fixture
def scenario_posting():
    """The backend posting used across the reference scenarios."""
    return JobPosting(
        id="p-1",
        title="Backend Engineer",
        company="Acme",
        workplace_type="remote",
        required_skills=["Go", "SQL"],
        required_experience_years=3,
        status="open",
    )


@pytest.fixture
def bare_posting():
    """A posting with nothing but an id and title."""
    return JobPosting(id="p-bare", title="Engineer")


class TestDefaults:
    """Tests for unconstrained predicates."""

    def test_default_predicate_matches_full_posting(self):
        """Every field at its default matches any posting."""
        assert matches(make_posting(), make_alert()) is True

    def test_default_predicate_matches_bare_posting(self, bare_posting):
        assert matches(bare_posting, make_alert()) is True

    def test_default_predicate_matches_closed_onsite_posting(self):
        posting = make_posting(status="closed", workplace_type="On-site", salary_min=1, salary_max=2)
        assert matches(posting, make_alert()) is True


class TestReferenceScenarios:
    """Tests for the documented example postings and predicates."""

    def test_scenario_posting_matches_go_remote_junior_alert(self, scenario_posting):
        alert = make_alert(skill_set=["Go"], experience_range=[0, 5], workplace_set=["remote"])
        assert matches(scenario_posting, alert) is True

    def test_scenario_posting_rejects_missing_rust(self, scenario_posting):
        assert matches(scenario_posting, make_alert(skill_set=["Go", "Rust"])) is False

    def test_unspecified_salary_passes_salary_filter(self, bare_posting):
        assert matches(bare_posting, make_alert(min_salary=40000)) is True


class TestSearchRule:
    """Tests for free-text search over title and company."""

    def test_matches_title_case_insensitively(self):
        assert matches(make_posting(title="Senior BACKEND Engineer"), make_alert(search_text="backend"))

    def test_matches_company(self):
        assert matches(make_posting(company="Globex"), make_alert(search_text="glob"))

    def test_does_not_search_location(self):
        posting = make_posting(title="Engineer", company="Acme", location="Backend City")
        assert not matches(posting, make_alert(search_text="backend"))

    def test_non_matching_text(self):
        assert not matches(make_posting(), make_alert(search_text="designer"))


class TestStatusRule:
    """Tests for status filtering."""

    def test_any_accepts_every_status(self):
        for status in ("open", "closed", None):
            assert matches(make_posting(status=status), make_alert(status_filter="any"))

    def test_all_is_alias_for_any(self):
        assert make_alert(status_filter="all").status_filter.value == "any"

    def test_exact_status_required(self):
        assert matches(make_posting(status="open"), make_alert(status_filter="open"))
        assert not matches(make_posting(status="closed"), make_alert(status_filter="open"))

    def test_missing_status_fails_specific_filter(self):
        assert not matches(make_posting(status=None), make_alert(status_filter="closed"))


class TestWorkplaceRule:
    """Tests for workplace filtering."""

    def test_membership(self):
        alert = make_alert(workplace_set=["remote", "hybrid"])
        assert matches(make_posting(workplace_type="Hybrid"), alert)
        assert not matches(make_posting(workplace_type="On-site"), alert)

    def test_unspecified_workplace_never_disqualifies(self):
        alert = make_alert(workplace_set=["on-site"])
        assert matches(make_posting(workplace_type=None), alert)
        assert matches(make_posting(workplace_type=""), alert)

    def test_client_spelling_accepted_in_filter(self):
        alert = AlertPredicate.from_filters("user-1", {"filterWorkplace": ["On-site"]})
        assert matches(make_posting(workplace_type="onsite"), alert)


class TestEmploymentRule:
    """Tests for employment type filtering."""

    def test_substring_match(self):
        alert = make_alert(employment_set=["Full-time"])
        assert matches(make_posting(employment_type="Full-time, Permanent"), alert)

    def test_any_member_suffices(self):
        alert = make_alert(employment_set=["Contract", "Part-time"])
        assert matches(make_posting(employment_type="Part-time"), alert)
        assert not matches(make_posting(employment_type="Full-time"), alert)

    def test_missing_employment_type_passes(self):
        assert matches(make_posting(employment_type=None), make_alert(employment_set=["Contract"]))


class TestLocationRule:
    """Tests for location substring filtering."""

    def test_case_insensitive_substring(self):
        assert matches(make_posting(location="Madrid, Spain"), make_alert(location_substring="madrid"))

    def test_non_matching_location(self):
        assert not matches(make_posting(location="Lisbon"), make_alert(location_substring="Madrid"))

    def test_empty_posting_location_fails_location_filter(self):
        assert not matches(make_posting(location=None), make_alert(location_substring="Madrid"))


class TestSalaryRule:
    """Tests for the lenient salary rule."""

    def test_zero_threshold_is_unconstrained(self):
        assert matches(make_posting(salary_min=10, salary_max=20), make_alert(min_salary=0))

    def test_uses_best_of_bounds(self):
        alert = make_alert(min_salary=50000)
        assert matches(make_posting(salary_min=30000, salary_max=50000), alert)
        assert not matches(make_posting(salary_min=30000, salary_max=49999), alert)

    def test_only_minimum_given(self):
        assert matches(make_posting(salary_min=60000, salary_max=None), make_alert(min_salary=50000))

    def test_only_maximum_given(self):
        assert not matches(make_posting(salary_min=None, salary_max=20000), make_alert(min_salary=50000))

    def test_neither_bound_given_passes(self):
        assert matches(make_posting(salary_min=None, salary_max=None), make_alert(min_salary=1_000_000))


class TestSkillsRule:
    """Tests for the all-requested-skills rule."""

    def test_subset_matches(self):
        assert matches(make_posting(required_skills=["Go", "SQL", "Docker"]), make_alert(skill_set=["Go", "SQL"]))

    @pytest.mark.parametrize("requested", [["Rust"], ["Go", "Rust"], ["SQL", "Kotlin"]])
    def test_any_missing_skill_rejects(self, requested):
        posting = make_posting(required_skills=["Go", "SQL"])
        assert matches(posting, make_alert(skill_set=requested)) is False

    def test_posting_without_skills_fails_skill_filter(self):
        assert not matches(make_posting(required_skills=None), make_alert(skill_set=["Go"]))


class TestExperienceRule:
    """Tests for the experience range."""

    @pytest.mark.parametrize("years,expected", [(0, False), (2, True), (3, True), (5, True), (6, False)])
    def test_inclusive_bounds(self, years, expected):
        alert = make_alert(experience_range=[2, 5])
        assert matches(make_posting(required_experience_years=years), alert) is expected

    @pytest.mark.parametrize("experience_range", [[0, 0], [10, 12], [0, 30], [25, 30]])
    def test_missing_experience_always_passes(self, experience_range):
        posting = make_posting(required_experience_years=None)
        assert matches(posting, make_alert(experience_range=experience_range)) is True

    def test_ceiling_is_open_ended(self):
        posting = make_posting(required_experience_years=35)
        assert matches(posting, make_alert())
        assert matches(posting, make_alert(experience_range=[10, 30]))
        assert not matches(posting, make_alert(experience_range=[10, 29]))


class TestLanguagesRule:
    """Tests for required language filtering."""

    def test_all_requested_languages_required(self):
        posting = make_posting(required_languages={"English": "C1", "Spanish": None})
        assert matches(posting, make_alert(language_set=["English", "Spanish"]))
        assert not matches(posting, make_alert(language_set=["English", "German"]))

    def test_level_ignored(self):
        posting = make_posting(required_languages=[{"English": "B2"}])
        assert matches(posting, make_alert(language_set=["English"]))

    def test_posting_without_languages_passes(self):
        assert matches(make_posting(required_languages=None), make_alert(language_set=["German"]))
        assert matches(make_posting(required_languages=[]), make_alert(language_set=["German"]))


class TestEvaluate:
    """Tests for evaluate() reporting."""

    def test_match_has_no_failed_rules(self):
        result = evaluate(make_posting(), make_alert())
        assert isinstance(result, MatchResult)
        assert result.is_match is True
        assert result.failed_rules == []
        assert bool(result) is True

    def test_reports_every_failed_rule_in_order(self):
        alert = make_alert(search_text="designer", skill_set=["Rust"], status_filter="closed")
        result = evaluate(make_posting(), alert)
        assert result.is_match is False
        assert result.failed_rules == ["search", "status", "skills"]

    def test_agrees_with_matches(self, scenario_posting):
        for alert in (make_alert(), make_alert(skill_set=["Rust"]), make_alert(location_substring="x")):
            assert evaluate(scenario_posting, alert).is_match == matches(scenario_posting, alert)


class TestAlertMatcher:
    """Tests for collection-level matching."""

    def test_matching_alerts_keeps_input_order(self):
        alerts = [
            make_alert("a", search_text="backend"),
            make_alert("b", skill_set=["Rust"]),
            make_alert("c"),
        ]
        matched = AlertMatcher().matching_alerts(make_posting(), alerts)
        assert [alert.owner_id for alert in matched] == ["a", "c"]

    def test_owner_with_several_matching_alerts_appears_once(self):
        alerts = [
            make_alert("user-u", search_text="backend"),
            make_alert("user-v"),
            make_alert("user-u", skill_set=["Go"]),
            make_alert("user-u"),
        ]
        assert AlertMatcher().matching_owners(make_posting(), alerts) == ["user-u", "user-v"]

    def test_no_alerts(self):
        assert AlertMatcher().matching_owners(make_posting(), []) == []

    def test_distinct_owners(self):
        alerts = [make_alert("x"), make_alert("y"), make_alert("x")]
        assert distinct_owners(alerts) == ["x", "y"]
