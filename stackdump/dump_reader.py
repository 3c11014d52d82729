"""
Reading goroutine dumps from files, stdin or a pprof HTTP endpoint, and splitting them into blocks
"""
import logging
import sys

import requests

logger = logging.getLogger(__name__)

STDIN = "-"


def is_url(source):
    return source.startswith("http://") or source.startswith("https://")


def retrieve_dump(url, timeout=60):
    """Fetch a dump, e.g. http://host:6060/debug/pprof/goroutine?debug=2"""
    logger.info("Retrieving: %s", url)

    r = requests.get(url, timeout=timeout)
    r.raise_for_status()
    return r.content.decode("utf-8", errors="replace")


def read_dump(source=STDIN):
    if source == STDIN:
        return sys.stdin.buffer.read().decode("utf-8", errors="replace")

    if is_url(source):
        return retrieve_dump(source)

    with open(source, "rb") as lfh:
        return lfh.read().decode("utf-8", errors="replace")


def split_blocks(lines):
    """
    Group lines into blocks of trimmed, non-empty lines. One or more blank lines end a block;
    whatever follows the last blank line is the final block.
    """
    block = []
    for line in lines:
        line = line.strip()
        if line == "":
            if block:
                yield block
                block = []
            continue
        block.append(line)

    if block:
        yield block


def read_blocks(sources):
    """All blocks of all sources, in order, as one batch"""
    blocks = []
    for source in sources:
        blocks.extend(split_blocks(read_dump(source).splitlines()))
    return blocks
