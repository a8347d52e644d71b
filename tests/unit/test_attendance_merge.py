"""月次勤怠マージのユニットテスト."""

import copy
from datetime import UTC, datetime

from backend.merge.attendance import merge_days, merge_groups, merge_month

FIXED_NOW = datetime(2024, 6, 1, 12, 0, tzinfo=UTC)


def _fixed_now():
    return FIXED_NOW


class TestMergeDays:
    """merge_days のテスト."""

    def test_attendance_merged_per_worker(self):
        """同じ日付の attendance は両側の作業員が残る."""
        local = [{"date": "2024-05-01", "attendance": {"w1": "present"}}]
        remote = [{"date": "2024-05-01", "attendance": {"w2": "absent"}}]
        result = merge_days(local, remote)
        assert result == [
            {"date": "2024-05-01", "attendance": {"w1": "present", "w2": "absent"}}
        ]

    def test_remote_overrides_same_worker(self):
        local = [{"date": "2024-05-01", "attendance": {"w1": "P", "w2": "P"}}]
        remote = [{"date": "2024-05-01", "attendance": {"w1": "A"}}]
        result = merge_days(local, remote)
        assert result[0]["attendance"] == {"w1": "A", "w2": "P"}

    def test_day_scalar_fields_remote_wins(self):
        """日レベルのその他フィールドは remote 優先、local のみのものは残る."""
        local = [
            {"date": "d1", "activityCode": "WD", "areaCode": "A1", "attendance": {}}
        ]
        remote = [{"date": "d1", "activityCode": "SP", "attendance": {}}]
        result = merge_days(local, remote)
        assert result[0]["activityCode"] == "SP"
        assert result[0]["areaCode"] == "A1"

    def test_new_dates_appended(self):
        local = [{"date": "d1", "attendance": {}}]
        remote = [{"date": "d2", "attendance": {"w1": "P"}}]
        assert [d["date"] for d in merge_days(local, remote)] == ["d1", "d2"]

    def test_missing_attendance_treated_as_empty(self):
        local = [{"date": "d1"}]
        remote = [{"date": "d1", "attendance": "broken"}]
        assert merge_days(local, remote)[0]["attendance"] == {}


class TestMergeGroups:
    """merge_groups のテスト."""

    def test_worker_ids_union(self):
        """workerIds は重複なしの和集合（local の順 → remote の新規分）."""
        local = [{"id": "g1", "workerIds": [1, 2, 5], "days": []}]
        remote = [{"id": "g1", "workerIds": [2, 3, 5, 4], "days": []}]
        result = merge_groups(local, remote)
        worker_ids = result[0]["workerIds"]
        assert worker_ids == [1, 2, 5, 3, 4]
        assert len(worker_ids) == len({1, 2, 5} | {2, 3, 5, 4})

    def test_missing_worker_ids_on_one_side(self):
        local = [{"id": "g1", "days": []}]
        remote = [{"id": "g1", "workerIds": ["w1"], "days": []}]
        assert merge_groups(local, remote)[0]["workerIds"] == ["w1"]

    def test_group_fields_overlay_not_replace(self):
        """local にしかないフィールドは残る（置換ではなく重ね合わせ）."""
        local = [{"id": "g1", "groupId": "G", "note": "keep", "days": []}]
        remote = [{"id": "g1", "groupId": "H", "days": []}]
        result = merge_groups(local, remote)[0]
        assert result["groupId"] == "H"
        assert result["note"] == "keep"

    def test_stale_remote_field_overwrites_newer_local(self):
        """既知の非対称: グループのスカラーフィールドは時刻を見ずに remote が勝つ."""
        local = [
            {
                "id": "g1",
                "name": "renamed later",
                "modifiedAt": "2024-05-10T00:00:00Z",
                "days": [],
            }
        ]
        remote = [
            {
                "id": "g1",
                "name": "old name",
                "modifiedAt": "2024-05-01T00:00:00Z",
                "days": [],
            }
        ]
        result = merge_groups(local, remote)[0]
        assert result["name"] == "old name"
        assert result["modifiedAt"] == "2024-05-01T00:00:00Z"

    def test_group_only_on_one_side_copied_as_is(self):
        local = [{"id": "g1", "days": []}]
        remote = [{"id": "g2", "name": "new"}]
        result = merge_groups(local, remote)
        assert result == [{"id": "g1", "days": []}, {"id": "g2", "name": "new"}]


class TestMergeMonth:
    """merge_month のテスト."""

    def test_none_local_returns_remote(self):
        remote = {"month": "2024-05", "groups": [], "lastModified": "x"}
        assert merge_month(None, remote, now=_fixed_now) == remote

    def test_none_remote_returns_local(self):
        local = {"month": "2024-05", "groups": [], "lastModified": "x"}
        assert merge_month(local, None, now=_fixed_now) == local

    def test_both_none(self):
        assert merge_month(None, None) is None

    def test_scenario_group_days_and_workers(self):
        """グループ・日・勤怠がそれぞれ統合される."""
        local = {
            "month": "2024-05",
            "groups": [
                {
                    "id": "g1",
                    "workerIds": [1, 2],
                    "days": [{"date": "05-01", "attendance": {"1": "present"}}],
                }
            ],
        }
        remote = {
            "month": "2024-05",
            "groups": [
                {
                    "id": "g1",
                    "workerIds": [2, 3],
                    "days": [
                        {"date": "05-01", "attendance": {"2": "present"}},
                        {"date": "05-02", "attendance": {"1": "absent"}},
                    ],
                }
            ],
        }
        result = merge_month(local, remote, now=_fixed_now)
        group = result["groups"][0]
        assert group["workerIds"] == [1, 2, 3]
        assert [d["date"] for d in group["days"]] == ["05-01", "05-02"]
        assert group["days"][0]["attendance"] == {"1": "present", "2": "present"}
        assert group["days"][1]["attendance"] == {"1": "absent"}

    def test_last_modified_stamped_with_now(self):
        """lastModified はどちらの入力からも引き継がずマージ時刻になる."""
        local = {"month": "2024-05", "lastModified": "2024-01-01T00:00:00.000Z"}
        remote = {"month": "2024-05", "lastModified": "2030-01-01T00:00:00.000Z"}
        result = merge_month(local, remote, now=_fixed_now)
        assert result["lastModified"] == "2024-06-01T12:00:00.000Z"

    def test_top_level_fields_remote_wins(self):
        local = {"month": "2024-05", "workerIds": ["a"], "legacy": True}
        remote = {"month": "2024-05", "workerIds": ["b"]}
        result = merge_month(local, remote, now=_fixed_now)
        assert result["workerIds"] == ["b"]
        assert result["legacy"] is True
        assert result["groups"] == []

    def test_idempotent_modulo_last_modified(self):
        """merge(X, X) == X（lastModified を除く）."""
        month = {
            "month": "2024-05",
            "groups": [
                {
                    "id": "g1",
                    "workerIds": ["w1", "w2"],
                    "days": [{"date": "2024-05-01", "attendance": {"w1": "P"}}],
                }
            ],
        }
        result = merge_month(month, month, now=_fixed_now)
        result.pop("lastModified")
        assert result == month

    def test_inputs_not_mutated(self):
        local = {
            "month": "2024-05",
            "groups": [{"id": "g1", "workerIds": [1], "days": []}],
        }
        remote = {
            "month": "2024-05",
            "groups": [{"id": "g1", "workerIds": [2], "days": []}],
        }
        local_before = copy.deepcopy(local)
        remote_before = copy.deepcopy(remote)

        result = merge_month(local, remote, now=_fixed_now)
        result["groups"][0]["workerIds"].append(99)

        assert local == local_before
        assert remote == remote_before

    def test_malformed_groups_treated_as_empty(self):
        local = {"month": "2024-05", "groups": "broken"}
        remote = {"month": "2024-05"}
        result = merge_month(local, remote, now=_fixed_now)
        assert result["groups"] == []
