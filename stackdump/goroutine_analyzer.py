"""
Deduplicate the goroutines of a Go stack dump
"""
import concurrent.futures
import functools
import logging

from . import grouping
from . import report
from . import stack_parser

logger = logging.getLogger(__name__)


def _parse_block(block, grammar):
    """(record, None) or (None, error); a bad block never stops the batch"""
    try:
        return stack_parser.parse_stack(block, grammar), None
    except stack_parser.ParseError as e:
        return None, e


class GoroutineDumpAnalyzer(object):
    """Parse a batch of goroutine blocks and group the ones with the same call pattern"""

    def __init__(self, blocks, grammar=stack_parser.DEFAULT_GRAMMAR, jobs=1):
        self.blocks = list(blocks)
        self.grammar = grammar
        self.jobs = jobs

        self.records = []
        self.errors = []
        self.groups = []

    def _parse_all(self):
        parse = functools.partial(_parse_block, grammar=self.grammar)

        if self.jobs <= 1 or len(self.blocks) < 2:
            return [parse(block) for block in self.blocks]

        # Executor.map yields in submission order, so the result does not depend on jobs
        chunksize = max(1, len(self.blocks) // (self.jobs * 4))
        with concurrent.futures.ProcessPoolExecutor(max_workers=self.jobs) as executor:
            return list(executor.map(parse, self.blocks, chunksize=chunksize))

    def analyze(self):
        logger.info("Analyzing %d blocks", len(self.blocks))

        self.records = []
        self.errors = []
        for record, error in self._parse_all():
            if error is not None:
                logger.debug("Skipping block: %s", error)
                self.errors.append(error)
            else:
                self.records.append(record)

        self.groups = list(grouping.group_stacks(self.records))

        logger.info("Found %d unique stacks among %d goroutines, %d blocks failed to parse",
                    len(self.groups), len(self.records), len(self.errors))

    def get_records(self):
        return self.records

    def get_errors(self):
        return self.errors

    def get_error_count(self):
        return len(self.errors)

    def get_groups(self, order="key"):
        return grouping.sort_groups(self.groups, order)

    def report_lines(self, min_count=0, print_errors=False, order="key"):
        error_count = self.get_error_count() if print_errors else None
        return report.report_lines(self.get_groups(order), min_count, error_count)

    def to_json(self, min_count=0, print_errors=False, order="key"):
        error_count = self.get_error_count() if print_errors else None
        return report.report_json(self.get_groups(order), min_count, error_count)
