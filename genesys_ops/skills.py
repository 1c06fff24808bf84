from genesys_ops.normalizers import (
    PROFICIENCY_MAX,
    PROFICIENCY_MIN,
    clamp_proficiency,
    map_collection,
    normalize_skill_assignment,
)

__all__ = [
    "PROFICIENCY_MAX",
    "PROFICIENCY_MIN",
    "SkillReconciler",
    "SkillWorkingSet",
    "clamp_proficiency",
    "sort_assignments",
]


def sort_assignments(assignments):
    return sorted(assignments, key=lambda s: (s.name.lower(), s.skill_id))


class SkillReconciler:
    """Submits a user's desired skill set as one replace call.

    There is no per-skill diff on the wire: the whole desired map is sent
    and whatever the platform answers becomes the authoritative set.
    """

    def __init__(self, api):
        self.api = api

    def fetch(self, user_id):
        raw = self.api.get_user_routing_skills(user_id)
        return sort_assignments(map_collection(raw, normalize_skill_assignment, label="user skill"))

    @staticmethod
    def build_payload(desired):
        return [
            {"id": skill_id, "proficiency": clamp_proficiency(proficiency), "state": "active"}
            for skill_id, proficiency in (desired or {}).items()
            if skill_id
        ]

    def reconcile(self, user_id, desired):
        payload = self.build_payload(desired)
        raw = self.api.replace_user_routing_skills(user_id, payload)
        return sort_assignments(map_collection(raw, normalize_skill_assignment, label="user skill"))


class SkillWorkingSet:
    """Editable copy of a user's skills next to the last fetched baseline.

    `changes()` only tells a view what to highlight; the write path always
    sends `desired()` in full.
    """

    def __init__(self, assignments=()):
        self.accept(assignments)

    def accept(self, assignments):
        """Make the given (server-returned) set both the baseline and the working set."""
        self.baseline = {s.skill_id: s.proficiency for s in assignments}
        self.names = {s.skill_id: s.name for s in assignments}
        self.working = dict(self.baseline)

    def add(self, skill_id, proficiency=PROFICIENCY_MIN, name=None):
        if skill_id not in self.working:
            self.working[skill_id] = clamp_proficiency(proficiency)
        if name:
            self.names.setdefault(skill_id, name)

    def remove(self, skill_id):
        self.working.pop(skill_id, None)

    def set_proficiency(self, skill_id, proficiency):
        if skill_id in self.working:
            self.working[skill_id] = clamp_proficiency(proficiency)

    def desired(self):
        return dict(self.working)

    def changes(self):
        added = sorted(k for k in self.working if k not in self.baseline)
        removed = sorted(k for k in self.baseline if k not in self.working)
        changed = sorted(
            k for k in self.working
            if k in self.baseline and self.working[k] != self.baseline[k]
        )
        return {"added": added, "changed": changed, "removed": removed}

    @property
    def dirty(self):
        return any(self.changes().values())
