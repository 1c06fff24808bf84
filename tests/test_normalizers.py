import unittest
from datetime import datetime, timezone

from genesys_ops.models import NOT_AVAILABLE, DivisionRef, PresenceStatus
from genesys_ops.monitor import monitor
from genesys_ops.normalizers import (
    clamp_proficiency,
    extract_extension,
    map_collection,
    normalize_audit_entry,
    normalize_conversation,
    normalize_division,
    normalize_skill_assignment,
    normalize_user,
    parse_timestamp,
)


class UserNormalizationTests(unittest.TestCase):
    def test_extension_prefers_primary_phone(self):
        contacts = [
            {"mediaType": "EMAIL", "address": "a@example.com"},
            {"mediaType": "PHONE", "type": "WORK", "extension": "200"},
            {"mediaType": "PHONE", "type": "PRIMARY", "extension": "100"},
        ]
        self.assertEqual(extract_extension(contacts), "100")

    def test_extension_falls_back_to_any_phone_with_extension(self):
        contacts = [
            {"mediaType": "PHONE", "type": "PRIMARY", "extension": ""},
            {"mediaType": "PHONE", "type": "WORK2", "extension": "305"},
        ]
        self.assertEqual(extract_extension(contacts), "305")
        self.assertIsNone(extract_extension([{"mediaType": "PHONE", "address": "+1555"}]))
        self.assertIsNone(extract_extension(None))

    def test_user_with_absent_fields(self):
        user = normalize_user({"id": "u1"})
        self.assertEqual(user.name, "Unknown User")
        self.assertIs(user.status, PresenceStatus.OFFLINE)
        self.assertEqual(user.division, DivisionRef(NOT_AVAILABLE, NOT_AVAILABLE))
        self.assertIsNone(user.extension)
        self.assertIsNone(user.version)

    def test_user_full_record(self):
        user = normalize_user({
            "id": "u2",
            "name": "Ada",
            "email": "ada@example.com",
            "version": 4,
            "division": {"id": "d1", "name": "Home"},
            "presence": {"presenceDefinition": {"systemPresence": "ON_QUEUE"}},
            "addresses": [{"mediaType": "PHONE", "type": "PRIMARY", "extension": "4411"}],
        })
        self.assertIs(user.status, PresenceStatus.ON_QUEUE)
        self.assertEqual(user.division.name, "Home")
        self.assertEqual(user.extension, "4411")
        self.assertEqual(user.version, 4)

    def test_division_uses_sentinels(self):
        self.assertEqual(normalize_division(None), DivisionRef())
        self.assertEqual(normalize_division({"id": "d1"}), DivisionRef("d1", NOT_AVAILABLE))


class SkillAssignmentTests(unittest.TestCase):
    def test_proficiency_is_clamped(self):
        self.assertEqual(clamp_proficiency(0), 1)
        self.assertEqual(clamp_proficiency(9), 5)
        self.assertEqual(clamp_proficiency("3"), 3)
        self.assertEqual(clamp_proficiency(None), 1)

    def test_incomplete_assignments_are_dropped(self):
        self.assertIsNone(normalize_skill_assignment({"id": "s1", "proficiency": 2}))
        self.assertIsNone(normalize_skill_assignment({"id": "s1", "name": "Spanish"}))
        skill = normalize_skill_assignment({"id": "s1", "name": "Spanish", "proficiency": 7})
        self.assertEqual(skill.proficiency, 5)


class MapCollectionTests(unittest.TestCase):
    def setUp(self):
        monitor.reset()

    def test_bad_items_are_skipped_and_logged(self):
        raw = [{"id": "u1", "name": "A"}, {"name": "no id"}, "garbage", {"id": "u2", "name": "B"}]
        with self.assertLogs("genesys_ops", level="WARNING"):
            users = map_collection(raw, normalize_user, label="user")
        self.assertEqual([u.id for u in users], ["u1", "u2"])
        errors = monitor.get_errors(module="NORMALIZE")
        self.assertEqual(len(errors), 2)
        self.assertTrue(any("KeyError" in e["details"] for e in errors))

    def test_none_input_is_empty(self):
        self.assertEqual(map_collection(None, normalize_user), [])


class AuditAndConversationTests(unittest.TestCase):
    def test_audit_entry_with_absent_fields(self):
        entry = normalize_audit_entry({"id": "a1"})
        self.assertIsNone(entry.timestamp)
        self.assertIsNone(entry.user_name)
        self.assertEqual(entry.changes, [])
        self.assertEqual(entry.remote_ips, [])

    def test_audit_entry_changes(self):
        entry = normalize_audit_entry({
            "id": "a2",
            "eventDate": "2024-03-01T10:00:00.000Z",
            "serviceName": "Architect",
            "action": "Update",
            "entity": {"id": "e1", "name": "Main Flow"},
            "user": {"id": "u1", "name": "Ada"},
            "remoteIp": ["10.0.0.1"],
            "propertyChanges": [{"property": "name", "oldValues": ["a"], "newValues": ["b"]}],
        })
        self.assertEqual(entry.timestamp, datetime(2024, 3, 1, 10, tzinfo=timezone.utc))
        self.assertEqual(entry.entity_name, "Main Flow")
        self.assertEqual(entry.changes[0].new_values, ["b"])
        self.assertEqual(entry.remote_ips, ["10.0.0.1"])

    def test_conversation_summary(self):
        conv = normalize_conversation({
            "conversationId": "c1",
            "conversationStart": "2024-03-01T10:00:00Z",
            "conversationEnd": "2024-03-01T10:01:30Z",
            "originatingDirection": "inbound",
            "divisionIds": ["d1"],
            "participants": [
                {"participantId": "p1", "purpose": "customer", "sessions": [{"mediaType": "voice"}]},
                {"participantId": "p2", "purpose": "agent"},
            ],
        })
        self.assertEqual(conv.duration_ms, 90000)
        self.assertEqual(conv.media_type, "voice")
        self.assertEqual([p.participant_id for p in conv.participants], ["p1", "p2"])

    def test_media_type_falls_back_to_later_sessions(self):
        conv = normalize_conversation({
            "conversationId": "c2",
            "participants": [
                {"participantId": "p1", "sessions": []},
                {"participantId": "p2", "sessions": [{}, {"mediaType": "chat"}]},
            ],
        })
        self.assertEqual(conv.media_type, "chat")
        self.assertIsNone(conv.duration_ms)

    def test_conversation_without_participants(self):
        conv = normalize_conversation({"conversationId": "c3"})
        self.assertIsNone(conv.media_type)
        self.assertEqual(conv.participants, [])

    def test_timestamps(self):
        self.assertEqual(parse_timestamp(0), datetime(1970, 1, 1, tzinfo=timezone.utc))
        self.assertIsNone(parse_timestamp("not a date"))
        self.assertIsNone(parse_timestamp(None))

    def test_timestamps_without_offset_are_utc(self):
        self.assertEqual(parse_timestamp("2024-03-01T12:00:00"), datetime(2024, 3, 1, 12, tzinfo=timezone.utc))
        self.assertEqual(parse_timestamp(datetime(2024, 3, 1, 12)).tzinfo, timezone.utc)

    def test_conversation_with_mixed_offsets(self):
        conv = normalize_conversation({
            "conversationId": "c4",
            "conversationStart": "2024-03-01T12:00:00",
            "conversationEnd": "2024-03-01T12:01:00Z",
        })
        self.assertEqual(conv.duration_ms, 60000)


if __name__ == "__main__":
    unittest.main()
