"""
Canonical identity of a stack, and aggregation of records into groups that share it.
"""

# Block lines are single trimmed lines, so a newline never occurs inside a status or a
# function name.
KEY_SEPARATOR = "\n"

SORT_ORDERS = ("key", "count")


def grouping_key(status, functions):
    """status and the ordered function names, each followed by KEY_SEPARATOR"""
    parts = [status]
    parts.extend(functions)
    return KEY_SEPARATOR.join(parts) + KEY_SEPARATOR


class StackGroup(object):
    """All records sharing one grouping key"""

    def __init__(self, key, records):
        if not records:
            raise ValueError("a group needs at least one record")

        self.key = key
        self.records = list(records)
        self.count = len(self.records)

        waits = [r.waiting_minutes for r in self.records]
        self.min_waiting = min(waits)
        self.max_waiting = max(waits)

        self.statuses = sorted(set(r.status for r in self.records))

    @property
    def representative(self):
        return self.records[0]

    @property
    def thread_ids(self):
        return sorted(r.thread_id for r in self.records)

    def __str__(self):
        return "StackGroup -- count:%d waiting:%d-%d status:%s" % (
            self.count, self.min_waiting, self.max_waiting, ", ".join(self.statuses))

    def to_json(self):
        return {
            "count": self.count,
            "min_waiting": self.min_waiting,
            "max_waiting": self.max_waiting,
            "statuses": self.statuses,
            "goroutines": self.thread_ids,
            "frames": [f._asdict() for f in self.representative.frames],
        }


def group_stacks(records):
    """
    Sort records by grouping key and yield one StackGroup per maximal run of equal keys,
    in ascending key order. The sort is stable, so each group's representative is the first
    of its members in input order.
    """
    ordered = sorted(records, key=lambda r: r.grouping_key)
    if not ordered:
        return

    start = 0
    for idx in range(1, len(ordered)):
        if ordered[idx].grouping_key == ordered[start].grouping_key:
            continue

        yield StackGroup(ordered[start].grouping_key, ordered[start:idx])
        start = idx

    yield StackGroup(ordered[start].grouping_key, ordered[start:])


def sort_groups(groups, order="key"):
    """Display order: "key" ascending, or "count" descending with ties broken by key"""
    if order == "key":
        return sorted(groups, key=lambda g: g.key)
    if order == "count":
        return sorted(groups, key=lambda g: (-g.count, g.key))
    raise ValueError("Unknown sort order %r, expected one of %s" % (order, ", ".join(SORT_ORDERS)))
