#!/usr/bin/env python3
"""
Provision static sites and domain redirects on AWS (S3 + CloudFront + ACM + Route53).

    python main.py deploy --domain example.com
    python main.py sync --domain example.com --source ./public --gzip
    python main.py redirect --source-domains example.net,example.org --target-domain example.com
    python main.py remove --domain example.com
    python main.py remove-redirect --source-domains example.net,example.org
    python main.py login --profile personal

Every command records its progress in a status file and can be re-run to
resume after a failure.
"""
import argparse
import sys

from aws import session as aws_session
from aws.config import load_config, merge_options, split_list
from aws.steps import DeployError
from redirect import deploy as redirect_deploy
from redirect.destroy import destroy_redirect
from s3 import deploy as site_deploy
from s3.destroy import destroy_static_site
from s3.sync import sync_site

DEFAULT_REGION = 'us-east-1'


class HelpAction(argparse.Action):
    """-h/--help prints usage and exits with status 1."""

    def __init__(self, option_strings, dest=argparse.SUPPRESS, default=argparse.SUPPRESS, help=None):
        super().__init__(option_strings=option_strings, dest=dest, default=default, nargs=0, help=help)

    def __call__(self, parser, namespace, values, option_string=None):
        parser.print_help()
        parser.exit(1)


def build_parser():
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("-h", "--help", action=HelpAction, help="Show this help message and exit")
    common.add_argument("--profile", help="AWS profile (default: ambient credentials)")
    common.add_argument("--region", help=f"AWS region for S3 buckets (default: {DEFAULT_REGION})")
    common.add_argument("--status-file", help="Status file path (default depends on the command)")
    common.add_argument("--yes", "-y", action="store_true", help="Do not ask for confirmation")
    common.add_argument("--config", "-c", help="YAML file with default option values")

    parser = argparse.ArgumentParser(
        prog="main.py",
        description="Static site and domain redirect provisioning on AWS",
        add_help=False,
    )
    parser.add_argument("-h", "--help", action=HelpAction, help="Show this help message and exit")
    sub = parser.add_subparsers(dest="command", metavar="<command>")

    p = sub.add_parser("deploy", parents=[common], add_help=False, help="Deploy (or resume) a static site")
    p.add_argument("--domain", "-d", help="Domain to serve, e.g. example.com")

    p = sub.add_parser("redirect", parents=[common], add_help=False, help="Redirect domains to a target domain")
    p.add_argument("--source-domains", "-s", help="Comma separated domains to redirect (1-10)")
    p.add_argument("--target-domain", "-t", help="Domain to redirect to")
    p.add_argument("--redirect-type", choices=["301", "302"], help="HTTP status for the redirect (default: 301)")
    p.add_argument("--redirect-path", help="Fixed path on the target, e.g. /landing")

    p = sub.add_parser("sync", parents=[common], add_help=False, help="Upload a directory to a deployed site")
    p.add_argument("--domain", "-d", help="Domain of the deployed site")
    p.add_argument("--source", help="Directory to upload (default: current directory)")
    p.add_argument("--paths", help="Comma separated paths to invalidate (default: /*)")
    p.add_argument("--gzip", action="store_true", help="Gzip text assets (html, css, js, ...)")
    p.add_argument("--exclude", help="Glob of files to leave alone, e.g. '*.map'")
    p.add_argument("--dry-run", action="store_true", help="Show what would change without changing anything")

    p = sub.add_parser("remove", parents=[common], add_help=False, help="Remove a static site deployment")
    p.add_argument("--domain", "-d", help="Domain of the deployed site")

    p = sub.add_parser("remove-redirect", parents=[common], add_help=False, help="Remove a redirect deployment")
    p.add_argument("--source-domains", "-s", help="Source domains used when deploying the redirect")

    sub.add_parser("login", parents=[common], add_help=False, help="Check AWS credentials")
    return parser


def parse_options(argv=None):
    """Parse the command line and merge in the --config file. Returns (command, options)."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        sys.exit(1)

    options = vars(args)
    if options.get("config"):
        options = merge_options(options, load_config(options["config"]))
    options["region"] = options.get("region") or DEFAULT_REGION
    if isinstance(options.get("paths"), str):
        options["paths"] = split_list(options["paths"])
    return options["command"], options


def run_deploy(options):
    if not options.get("domain"):
        print("Error: --domain is required")
        sys.exit(1)
    store = site_deploy.deploy_static_site(options)
    incomplete = site_deploy.incomplete_steps(store)
    if incomplete:
        print(f"Warning: not finished yet ({', '.join(incomplete)}); run the same command again to resume.")
        sys.exit(1)


def run_redirect(options):
    store = redirect_deploy.deploy_redirect(options)
    skipped = store.get_array("skipped_domains")
    incomplete = redirect_deploy.incomplete_steps(store)
    if skipped:
        print(f"Warning: skipped domains: {', '.join(skipped)}")
    if skipped or incomplete:
        print("Run the same command again to resume.")
        sys.exit(1)


def run_login(options):
    try:
        aws_session.login(options.get("profile"), options["region"])
    except DeployError as e:
        print(f"Error: {e}")
        sys.exit(1)


def main(argv=None):
    command, options = parse_options(argv)

    if command == "deploy":
        run_deploy(options)
    elif command == "redirect":
        run_redirect(options)
    elif command == "sync":
        sync_site(options)
    elif command == "remove":
        if not destroy_static_site(options):
            sys.exit(1)
    elif command == "remove-redirect":
        if not destroy_redirect(options):
            sys.exit(1)
    elif command == "login":
        run_login(options)


if __name__ == "__main__":
    main()
