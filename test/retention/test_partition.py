import datetime

import pytest

from registry_retention.retention.models import Decision, RetentionGroup, TaggedArtifact
from registry_retention.retention.partition import age_in_days, partition, sort_newest_first
from registry_retention.retention.policy import TagRule
from test.helpers import CONST_DATETIME_NOW, days_ago

pytestmark = [pytest.mark.unit]

SCENARIO_AGES = [1, 10, 40, 90, 200]


def make_group(ages: list[float], keep_days: int, keep_count: int) -> RetentionGroup:
    """Build a group with one tag per age, named ``d<age>``."""
    return RetentionGroup(
        rule_index=0,
        rule=TagRule(tag_regex=".*", keep_days=keep_days, keep_count=keep_count),
        artifacts=[TaggedArtifact(name=f"d{age}", created_at=days_ago(age)) for age in ages],
    )


class TestAgeInDays:
    def test_whole_days(self):
        """Test age is the number of elapsed whole days"""
        assert age_in_days(TaggedArtifact("a", days_ago(3)), CONST_DATETIME_NOW) == 3

    def test_rounded_down(self):
        """Test partial days are rounded down"""
        assert age_in_days(TaggedArtifact("a", days_ago(2.9)), CONST_DATETIME_NOW) == 2

    def test_fresh_tag(self):
        """Test a tag created less than a day ago is zero days old"""
        assert age_in_days(TaggedArtifact("a", days_ago(0.5)), CONST_DATETIME_NOW) == 0


class TestSortNewestFirst:
    def test_order(self):
        """Test artifacts are ordered from newest to oldest"""
        artifacts = [TaggedArtifact(f"d{age}", days_ago(age)) for age in [40, 1, 200, 10]]
        assert [a.name for a in sort_newest_first(artifacts)] == ["d1", "d10", "d40", "d200"]

    def test_ties_keep_input_order(self):
        """Test artifacts sharing a creation time keep their input order"""
        created_at = days_ago(5)
        artifacts = [TaggedArtifact(name, created_at) for name in ["b", "a", "c"]]
        assert [a.name for a in sort_newest_first(artifacts)] == ["b", "a", "c"]


class TestPartition:
    def test_age_threshold_without_rescue(self):
        """Test tags older than keep_days are purged when enough tags survive the age threshold"""
        decision = partition(make_group(SCENARIO_AGES, keep_days=30, keep_count=2), CONST_DATETIME_NOW)
        assert decision.keep == ("d1", "d10")
        assert decision.purge == ("d40", "d90", "d200")

    def test_count_floor_rescues_newest_stale_tags(self):
        """Test the newest purge candidates are kept to reach keep_count"""
        decision = partition(make_group(SCENARIO_AGES, keep_days=30, keep_count=4), CONST_DATETIME_NOW)
        assert decision.keep == ("d1", "d10", "d40", "d90")
        assert decision.purge == ("d200",)

    def test_count_floor_rescues_everything(self):
        """Test all tags are kept when keep_count exceeds the group size"""
        decision = partition(make_group(SCENARIO_AGES, keep_days=30, keep_count=10), CONST_DATETIME_NOW)
        assert decision.keep == ("d1", "d10", "d40", "d90", "d200")
        assert decision.purge == ()

    def test_all_stale(self):
        """Test the floor keeps the newest tags of a group where every tag is stale"""
        decision = partition(make_group([100, 300, 200], keep_days=30, keep_count=2), CONST_DATETIME_NOW)
        assert decision.keep == ("d100", "d200")
        assert decision.purge == ("d300",)

    def test_keep_count_zero_disables_floor(self):
        """Test keep_count=0 purges exactly the tags older than keep_days"""
        decision = partition(make_group(SCENARIO_AGES, keep_days=30, keep_count=0), CONST_DATETIME_NOW)
        assert decision.keep == ("d1", "d10")
        assert decision.purge == ("d40", "d90", "d200")

    def test_negative_keep_days(self):
        """Test negative keep_days makes every tag stale"""
        decision = partition(make_group([0, 1, 2], keep_days=-1, keep_count=0), CONST_DATETIME_NOW)
        assert decision.keep == ()
        assert decision.purge == ("d0", "d1", "d2")

    def test_threshold_is_exclusive(self):
        """Test a tag exactly keep_days old is kept"""
        decision = partition(make_group([30, 31], keep_days=30, keep_count=0), CONST_DATETIME_NOW)
        assert decision.keep == ("d30",)
        assert decision.purge == ("d31",)

    def test_empty_group(self):
        """Test an empty group yields an empty decision"""
        decision = partition(make_group([], keep_days=30, keep_count=5), CONST_DATETIME_NOW)
        assert decision == Decision()

    def test_naive_now_is_utc(self):
        """Test a naive reference time is treated as UTC"""
        naive_now = CONST_DATETIME_NOW.replace(tzinfo=None)
        decision = partition(make_group(SCENARIO_AGES, keep_days=30, keep_count=2), naive_now)
        assert decision.purge == ("d40", "d90", "d200")

    def test_idempotent(self):
        """Test partitioning the same group twice yields the same decision"""
        group = make_group(SCENARIO_AGES, keep_days=30, keep_count=3)
        assert partition(group, CONST_DATETIME_NOW) == partition(group, CONST_DATETIME_NOW)

    @pytest.mark.parametrize("keep_days", [-1, 0, 5, 30, 100, 1000])
    @pytest.mark.parametrize("keep_count", [0, 1, 3, 5, 8])
    def test_complete_split_and_floor(self, keep_days, keep_count):
        """Test every tag lands in exactly one list and the count floor always holds"""
        group = make_group(SCENARIO_AGES, keep_days=keep_days, keep_count=keep_count)
        decision = partition(group, CONST_DATETIME_NOW)

        assert len(decision.keep) + len(decision.purge) == len(group)
        assert sorted(decision.keep + decision.purge) == sorted(a.name for a in group.artifacts)
        assert len(decision.keep) >= min(keep_count, len(group))
        stale = {a.name for a in group.artifacts if age_in_days(a, CONST_DATETIME_NOW) > keep_days}
        assert set(decision.purge) <= stale
