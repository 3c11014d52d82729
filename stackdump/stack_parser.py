"""
Parser for goroutine dump blocks.

A block is the run of non-blank lines the Go runtime prints for one goroutine:

    goroutine 17 [chan receive, 5 minutes]:
    main.worker(0xc000010000)
            /src/app/worker.go:42 +0x5d
    created by main.start in goroutine 1
            /src/app/main.go:20 +0x8f

parse_stack() turns one such block into a StackRecord, or raises ParseError
naming the first line that does not fit the grammar.
"""
import collections
import re

from . import grouping

# Creator name recorded for goroutines started by the process entry point.
ENTRY_POINT = "-"

MAX_UINT = 2 ** 64 - 1

Frame = collections.namedtuple("Frame", ["function", "args", "path", "line", "offset"])

CreatedBy = collections.namedtuple("CreatedBy",
                                   ["function", "parent_id", "path", "line", "offset"])

LineMatch = collections.namedtuple("LineMatch", ["ok", "fields", "reason"])


class ParseError(ValueError):
    """A block does not conform to the goroutine dump grammar"""

    def __init__(self, line, expected, reason="no match"):
        super().__init__(line, expected, reason)
        self.line = line
        self.expected = expected
        self.reason = reason

    def __str__(self):
        return "%s: %r (expected %s)" % (self.reason, self.line, self.expected)


class LineMatcher(object):
    """One line of the grammar. match() never raises, it returns a LineMatch."""

    def __init__(self, name, pattern):
        self.name = name
        # \d means ASCII digits only
        self.regex = re.compile(pattern, re.ASCII)

    def match(self, line):
        m = self.regex.match(line)
        if m is None:
            return LineMatch(False, None, "no match")
        return LineMatch(True, m.groupdict(), None)

    def __str__(self):
        return "%s /%s/" % (self.name, self.regex.pattern)


class Grammar(object):
    """
    The line grammars for one dump format.

    offset_base - 16 accepts only " +0x<lowercase hex>" offsets. 0 takes the token after
                  " +" and reads its base from the prefix: "+0x1f" is hex, "+037" octal, "+31"
                  decimal.
    entry_point_sentinel - literal created-by line used for goroutines started by the entry
                  point. None turns the special case off.
    """

    def __init__(self, offset_base=16, entry_point_sentinel="main.main()"):
        if offset_base not in (0, 16):
            raise ValueError("offset_base must be 0 or 16, not %r" % (offset_base,))

        self.offset_base = offset_base
        self.entry_point_sentinel = entry_point_sentinel

        if offset_base == 16:
            offset = r"(?: \+0x(?P<offset>[0-9a-f]+))?"
        else:
            offset = r"(?: \+(?P<offset>0[xX][0-9a-fA-F]+|[0-9]+))?"

        self.header = LineMatcher(
            "header", r"^goroutine (?P<id>\d+) \[(?P<status>[^,\]]+)(?:, (?P<minutes>\d+) minutes)?\]:$")
        self.created = LineMatcher(
            "created by", r"^created by (?P<function>.+) in goroutine (?P<parent>\d+)$")
        self.location = LineMatcher("location", r"^(?P<path>.+):(?P<line>\d+)" + offset + "$")
        self.call = LineMatcher("function call", r"^(?P<function>.+)\((?P<args>.*)\)$")

    def __repr__(self):
        return "Grammar(offset_base=%r, entry_point_sentinel=%r)" % (
            self.offset_base, self.entry_point_sentinel)


DEFAULT_GRAMMAR = Grammar()


class StackRecord(object):
    """One parsed goroutine. grouping_key is computed once, from status and frame functions."""

    def __init__(self, thread_id, status, waiting_minutes, frames, created_by):
        self.thread_id = thread_id
        self.status = status
        self.waiting_minutes = waiting_minutes
        self.frames = tuple(frames)
        self.created_by = created_by
        self._grouping_key = grouping.grouping_key(status, [f.function for f in self.frames])

    @property
    def grouping_key(self):
        return self._grouping_key

    def __eq__(self, other):
        if not isinstance(other, StackRecord):
            return NotImplemented
        return (self.thread_id, self.status, self.waiting_minutes, self.frames,
                self.created_by) == (other.thread_id, other.status, other.waiting_minutes,
                                     other.frames, other.created_by)

    __hash__ = None

    def __repr__(self):
        return "StackRecord(goroutine=%d, status=%r, waiting=%d, frames=%d)" % (
            self.thread_id, self.status, self.waiting_minutes, len(self.frames))

    def to_json(self):
        return {
            "goroutine": self.thread_id,
            "status": self.status,
            "waiting_minutes": self.waiting_minutes,
            "frames": [f._asdict() for f in self.frames],
            "created_by": self.created_by._asdict(),
        }


def _expect(matcher, line):
    result = matcher.match(line)
    if not result.ok:
        raise ParseError(line, str(matcher), result.reason)
    return result.fields


def _uint(text, line, base=10):
    if text is None:
        return None
    if base == 0 and len(text) > 1 and text[0] == "0" and text[1] not in "xX":
        # leading zero is octal, as in C and Go
        text, base = text[1:], 8
    try:
        value = int(text, base)
    except ValueError:
        raise ParseError(line, "unsigned integer (base %d)" % base, "bad number %r" % text)
    if value < 0 or value > MAX_UINT:
        raise ParseError(line, "unsigned 64-bit integer", "number out of range %r" % text)
    return value


def _location(grammar, line):
    fields = _expect(grammar.location, line)
    return (fields["path"],
            _uint(fields["line"], line),
            _uint(fields["offset"], line, grammar.offset_base))


def parse_stack(lines, grammar=DEFAULT_GRAMMAR):
    """
    Parse one block of trimmed, non-empty lines into a StackRecord.

    Raises ParseError on the first line that does not match; a partial record is never returned.
    """
    if len(lines) < 3:
        raise ParseError(lines[0] if lines else "", "at least 3 lines", "not enough lines")

    header = _expect(grammar.header, lines[0])
    thread_id = _uint(header["id"], lines[0])
    status = header["status"]
    waiting = _uint(header["minutes"], lines[0]) or 0

    created_line = lines[-2]
    if grammar.entry_point_sentinel is not None and created_line == grammar.entry_point_sentinel:
        creator, parent = ENTRY_POINT, None
    else:
        fields = _expect(grammar.created, created_line)
        creator, parent = fields["function"], _uint(fields["parent"], created_line)

    path, line, offset = _location(grammar, lines[-1])
    created_by = CreatedBy(creator, parent, path, line, offset)

    interior = lines[1:-2]
    if len(interior) % 2 != 0:
        raise ParseError(interior[-1], "function call / location line pairs",
                         "odd number of frame lines")

    frames = []
    for i in range(0, len(interior), 2):
        call = _expect(grammar.call, interior[i])
        path, line, offset = _location(grammar, interior[i + 1])
        frames.append(Frame(call["function"], call["args"], path, line, offset))

    return StackRecord(thread_id, status, waiting, frames, created_by)
