import unittest
from unittest import mock

from genesys_ops.models import SkillAssignment
from genesys_ops.skills import SkillReconciler, SkillWorkingSet


class SkillReconcilerTests(unittest.TestCase):
    def setUp(self):
        self.api = mock.Mock()
        self.reconciler = SkillReconciler(self.api)

    def test_out_of_range_proficiency_is_clamped_before_sending(self):
        self.api.replace_user_routing_skills.return_value = []
        self.reconciler.reconcile("u1", {"s1": 0, "s2": 9, "s3": 3})
        user_id, payload = self.api.replace_user_routing_skills.call_args[0]
        self.assertEqual(user_id, "u1")
        self.assertEqual(
            sorted(payload, key=lambda s: s["id"]),
            [
                {"id": "s1", "proficiency": 1, "state": "active"},
                {"id": "s2", "proficiency": 5, "state": "active"},
                {"id": "s3", "proficiency": 3, "state": "active"},
            ],
        )

    def test_infinite_proficiency_is_clamped(self):
        self.api.replace_user_routing_skills.return_value = []
        self.reconciler.reconcile("u1", {"s1": float("inf"), "s2": float("-inf"), "s3": "1e400"})
        payload = self.api.replace_user_routing_skills.call_args[0][1]
        self.assertEqual({s["id"]: s["proficiency"] for s in payload}, {"s1": 5, "s2": 1, "s3": 5})

    def test_empty_desired_set_clears_all_skills(self):
        self.api.replace_user_routing_skills.return_value = []
        self.assertEqual(self.reconciler.reconcile("u1", {}), [])
        self.api.replace_user_routing_skills.assert_called_once_with("u1", [])

    def test_server_answer_is_authoritative(self):
        self.api.replace_user_routing_skills.return_value = [
            {"id": "s2", "name": "Spanish", "proficiency": 5},
            {"id": "s1", "name": "billing", "proficiency": 2},
            {"id": "s9", "proficiency": 4},
        ]
        result = self.reconciler.reconcile("u1", {"s1": 2, "s2": 5})
        self.assertEqual(result, [SkillAssignment("s1", "billing", 2), SkillAssignment("s2", "Spanish", 5)])

    def test_fetch_sorts_by_name(self):
        self.api.get_user_routing_skills.return_value = [
            {"id": "b", "name": "Zulu", "proficiency": 1},
            {"id": "a", "name": "alpha", "proficiency": 3},
        ]
        self.assertEqual([s.skill_id for s in self.reconciler.fetch("u1")], ["a", "b"])


class SkillWorkingSetTests(unittest.TestCase):
    def setUp(self):
        self.working = SkillWorkingSet([SkillAssignment("s1", "Billing", 2), SkillAssignment("s2", "Spanish", 4)])

    def test_fresh_set_is_clean(self):
        self.assertFalse(self.working.dirty)
        self.assertEqual(self.working.desired(), {"s1": 2, "s2": 4})

    def test_changes_are_tracked(self):
        self.working.add("s3", 7, name="French")
        self.working.set_proficiency("s1", 0)
        self.working.remove("s2")
        self.assertEqual(self.working.changes(), {"added": ["s3"], "changed": ["s1"], "removed": ["s2"]})
        self.assertEqual(self.working.desired(), {"s1": 1, "s3": 5})
        self.assertTrue(self.working.dirty)

    def test_accept_resets_baseline(self):
        self.working.remove("s1")
        self.working.accept([SkillAssignment("s2", "Spanish", 4)])
        self.assertFalse(self.working.dirty)
        self.assertEqual(self.working.desired(), {"s2": 4})

    def test_working_set_clamps_infinite_values(self):
        self.working.add("s3", float("inf"))
        self.working.set_proficiency("s1", float("-inf"))
        self.assertEqual(self.working.desired(), {"s1": 1, "s2": 4, "s3": 5})

    def test_set_proficiency_ignores_unknown_skill(self):
        self.working.set_proficiency("missing", 3)
        self.assertNotIn("missing", self.working.desired())


if __name__ == "__main__":
    unittest.main()
