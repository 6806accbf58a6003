"""
    Main entry point for the permission auditor.

    perm-auditor check --target user
    perm-auditor check --path /etc/shadow --expect 600 --importance high --expect-uid 0
    perm-auditor check --toml rules.toml --format json --store report.json
    perm-auditor check --target all --fix
    perm-auditor net --devices
"""
import argparse
import logging
import sys

from collectors.linux.linux_network import get_arp_devices
from core.config import load_rules
from core.defaults import TARGETS, rules_for_target
from core.errors import ConfigError, ModeParseError
from core.models import PolicyRule
from core.modes import parse_mode
from core.remediation import generate
from core.report import build_meta, write_json_report
from core.traversal import audit_rules
from helpers.logs import configure_logging
from helpers.unix import run_script
from reports.formatter import FORMATS, render
from shared.network import get_net_addr

logger = logging.getLogger(__name__)

EXIT_CLEAN = 0
EXIT_FINDINGS = 1
EXIT_USAGE = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="perm-auditor",
        description="Audit file permissions, ownership and symlinks against a policy.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging on stderr")
    sub = parser.add_subparsers(dest="command", required=True)

    check = sub.add_parser("check", help="audit paths against rules")
    check.add_argument("--target", choices=[*TARGETS, "all"], help="built-in rule set")
    check.add_argument("--toml", metavar="FILE", help="load rules from a TOML file")
    check.add_argument("--path", help="audit a single path (or glob / directory root)")
    check.add_argument("--expect", metavar="MODE", help="expected mode: 640, rw-r-----, u=rw,g=r,o=")
    check.add_argument("--importance", choices=["low", "medium", "high", "critical"])
    check.add_argument("--expect-uid", type=int)
    check.add_argument("--expect-gid", type=int)
    check.add_argument("--expect-link", metavar="TARGET", help="expected symlink target")
    check.add_argument("--recursive", action="store_true", help="walk a directory root")
    check.add_argument("--follow-symlinks", action="store_true")
    check.add_argument("--at-most", action="store_true",
                       help="accept modes no more permissive than expected")
    check.add_argument("--format", choices=FORMATS, default="pretty")
    check.add_argument("--columns", help="comma separated columns for csv/text output")
    check.add_argument("--store", metavar="FILE", help="also write the report as JSON")
    check.add_argument("--script", metavar="FILE", help="write the remediation script to FILE")
    check.add_argument("--fix", action="store_true",
                       help="show the remediation script and offer to run it (asks for confirmation)")

    net = sub.add_parser("net", help="local network discovery")
    net.add_argument("--devices", action="store_true", help="devices from the neighbour (ARP) table")
    net.add_argument("--interfaces", action="store_true", help="local network interfaces")
    net.add_argument("--format", choices=FORMATS, default="pretty")

    return parser


def confirm(prompt: str) -> bool:
    """Ask a yes/no question; anything but y/yes is a no."""
    try:
        answer = input(f"{prompt} [y/N]: ")
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


def _path_rule(args) -> PolicyRule:
    mode = parse_mode(args.expect) if args.expect is not None else None
    return PolicyRule(
        path=args.path,
        importance=(args.importance or "medium").upper(),
        expected_mode=mode,
        expected_uid=args.expect_uid,
        expected_gid=args.expect_gid,
        expected_link_target=args.expect_link,
        recursive=args.recursive,
        follow_symlinks=args.follow_symlinks,
        mode_match="AT_MOST" if args.at_most else "EXACT",
    )


_PATH_ONLY_FLAGS = (
    ("expect", "--expect"),
    ("importance", "--importance"),
    ("expect_uid", "--expect-uid"),
    ("expect_gid", "--expect-gid"),
    ("expect_link", "--expect-link"),
    ("recursive", "--recursive"),
    ("follow_symlinks", "--follow-symlinks"),
    ("at_most", "--at-most"),
)


def cmd_check(args) -> int:
    if not args.path:
        # --expect-uid 0 counts as given
        stray = [flag for dest, flag in _PATH_ONLY_FLAGS
                 if getattr(args, dest) is not None and getattr(args, dest) is not False]
        if stray:
            print(f"{', '.join(stray)} require(s) --path", file=sys.stderr)
            return EXIT_USAGE

    rules: list[PolicyRule] = []
    sources: list[str] = []
    config_errors: list[dict] = []

    if args.target:
        rules.extend(rules_for_target(args.target))
        sources.append(f"target:{args.target}")

    if args.toml:
        try:
            ruleset = load_rules(args.toml)
        except ConfigError as e:
            print(f"Error: {e}", file=sys.stderr)
            return EXIT_USAGE
        rules.extend(ruleset.rules)
        config_errors.extend({"path": err["path"], "error": err["error"]} for err in ruleset.errors)
        sources.append(f"toml:{args.toml}")

    if args.path:
        try:
            rules.append(_path_rule(args))
        except ModeParseError as e:
            print(f"Error parsing expected mode: {e}", file=sys.stderr)
            return EXIT_USAGE
        sources.append(f"path:{args.path}")

    if not rules and not config_errors:
        print("Nothing to audit: use --target, --toml or --path.", file=sys.stderr)
        return EXIT_USAGE

    report = audit_rules(rules)
    report.rule_errors = config_errors + report.rule_errors
    report.meta = build_meta(sources)

    columns = [c.strip() for c in args.columns.split(",")] if args.columns else None
    sys.stdout.write(render(report, args.format, columns))

    if args.store:
        out = write_json_report(report, args.store)
        print(f"JSON report stored to {out}", file=sys.stderr)

    script = generate(report)
    if args.format == "pretty":
        for action in script.actions:
            print(f"    Suggested fix: {action.command()}")

    if args.script:
        with open(args.script, "w", encoding="utf-8") as f:
            f.write(script.text)
        print(f"Remediation script written to {args.script}", file=sys.stderr)

    if args.fix:
        _offer_fix(script)

    if report.is_clean and not report.rule_errors:
        return EXIT_CLEAN
    return EXIT_FINDINGS


def _offer_fix(script) -> None:
    if not script.actions:
        print("Nothing to fix.")
        return

    print("\n --- Remediation script --- \n")
    print(script.text)
    if not sys.stdin.isatty():
        logger.warning("stdin is not a terminal; remediation script was not executed")
        return
    if not confirm("Apply these changes?"):
        return
    if not confirm("Run the script now (may use sudo)?"):
        return

    rc = run_script(script.text)
    if rc == 0:
        print("Remediation applied. Re-run the audit to verify.")
    else:
        print(f"Remediation script exited with status {rc}", file=sys.stderr)


def cmd_net(args) -> int:
    if not (args.devices or args.interfaces):
        print("Use --devices and/or --interfaces.", file=sys.stderr)
        return EXIT_USAGE

    if args.devices:
        scan = get_arp_devices()
        sys.stdout.write(render(scan, args.format))
        if scan.not_checked:
            return EXIT_FINDINGS
    if args.interfaces:
        sys.stdout.write(render(get_net_addr(), args.format))
    return EXIT_CLEAN


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    if args.command == "check":
        return cmd_check(args)
    return cmd_net(args)


if __name__ == "__main__":
    sys.exit(main())
