#!/usr/bin/env python3
"""
Summarize a Go goroutine dump: one entry per distinct blocking pattern, with the number of
goroutines stuck in it.

    kill -QUIT <pid> 2> dump.txt; goroutine_deadlock_analyzer.py -c 2 dump.txt
    goroutine_deadlock_analyzer.py http://localhost:6060/debug/pprof/goroutine?debug=2
"""
import argparse
import logging
import sys

import requests

from stackdump import analyzer_config
from stackdump import dump_reader
from stackdump import goroutine_analyzer
from stackdump import stack_parser

logger = logging.getLogger("stackdump")


def build_parser():
    parser = argparse.ArgumentParser(description='Deduplicate goroutine stack dumps.')

    parser.add_argument("files", type=str, nargs='*', default=[dump_reader.STDIN],
                        help="dump files or URLs to read, '-' for stdin (the default)")
    parser.add_argument("-e", "--errors", dest="print_errors", action="store_true", default=None,
                        help="print the number of blocks that failed to parse")
    parser.add_argument("-c", "--count", dest="min_count", type=int, default=None,
                        help="remove stacks with count less than this")
    parser.add_argument("--sort", choices=["key", "count"], default=None,
                        help="order of the groups: by stack (default) or by descending count")
    parser.add_argument("--json", action="store_true", help="write JSON instead of text")
    parser.add_argument("--offset-base", type=int, choices=[0, 16], default=None,
                        help="16: offsets are +0x<hex>; 0: the offset prefix picks the base")
    parser.add_argument("--no-entry-point-sentinel", action="store_true",
                        help="do not accept 'main.main()' as a created-by line")
    parser.add_argument("-j", "--jobs", type=int, default=None,
                        help="number of processes used to parse blocks")
    parser.add_argument("--config", type=str, default=None,
                        help="YAML config file (default: %s)" % analyzer_config.DEFAULT_CONFIG_FILE)
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    logging.basicConfig(stream=sys.stderr,
                        level=logging.DEBUG if args.verbose else logging.WARNING,
                        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    try:
        config = analyzer_config.load_config(args.config)
    except analyzer_config.ConfigError as e:
        logger.error("%s", e)
        return 1

    # Command line flags win over the config file
    for key in ("print_errors", "min_count", "sort", "offset_base", "jobs"):
        value = getattr(args, key)
        if value is not None:
            config[key] = value
    if args.no_entry_point_sentinel:
        config["entry_point_sentinel"] = None

    grammar = stack_parser.Grammar(offset_base=config["offset_base"],
                                   entry_point_sentinel=config["entry_point_sentinel"])

    try:
        blocks = dump_reader.read_blocks(args.files)
    except (OSError, requests.RequestException) as e:
        logger.error("Cannot read input: %s", e)
        return 1

    analyzer = goroutine_analyzer.GoroutineDumpAnalyzer(blocks, grammar, jobs=config["jobs"])
    analyzer.analyze()

    if args.json:
        print(analyzer.to_json(config["min_count"], config["print_errors"], config["sort"]))
    else:
        for line in analyzer.report_lines(config["min_count"], config["print_errors"],
                                          config["sort"]):
            print(line)

    return 0


if __name__ == '__main__':
    sys.exit(main())
