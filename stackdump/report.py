"""
Rendering of stack groups for the operator
"""
import json
import os

from tabulate import tabulate

from . import grouping
from . import stack_parser


def summary_line(group):
    return "count:%d waiting:%d-%d status:%s" % (group.count,
                                                 group.min_waiting,
                                                 group.max_waiting,
                                                 ", ".join(group.statuses))


def frame_lines(frames):
    """One "file:line  function" row per frame, columns aligned"""
    if not frames:
        return []

    rows = [["%s:%d" % (os.path.basename(f.path), f.line), f.function] for f in frames]
    table = tabulate(rows, tablefmt="plain", disable_numparse=True)
    return [row.rstrip() for row in table.splitlines()]


def report_lines(groups, min_count=0, error_count=None):
    """
    Yield the text report. Groups with fewer than min_count members are skipped entirely.
    An "errors:N" trailer is added when error_count is not None.
    """
    for group in groups:
        if group.count < min_count:
            continue

        yield summary_line(group)
        for line in frame_lines(group.representative.frames):
            yield line
        yield ""

    if error_count is not None:
        yield "errors:%d" % error_count


class CustomEncoder(json.JSONEncoder):
    def default(self, obj):
        if isinstance(obj, (grouping.StackGroup, stack_parser.StackRecord)):
            return obj.to_json()

        # Let the base class default method raise the TypeError
        return json.JSONEncoder.default(self, obj)


def report_json(groups, min_count=0, error_count=None):
    d1 = {"groups": [g for g in groups if g.count >= min_count]}
    if error_count is not None:
        d1["errors"] = error_count
    return json.dumps(d1, cls=CustomEncoder, indent="\t")
