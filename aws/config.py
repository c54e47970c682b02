#!/usr/bin/env python3
"""
Optional YAML configuration file supplying defaults for command-line options.

Example:

    domain: example.com
    profile: personal
    region: us-east-1
    sync:
      source: ./public
      gzip: true
"""
import yaml
import sys


ALLOWED_KEYS = {
    'domain', 'source_domains', 'target_domain', 'profile', 'region',
    'status_file', 'redirect_type', 'redirect_path', 'source', 'paths',
    'gzip', 'exclude', 'yes',
}

# Keys allowed inside the optional 'sync' / 'redirect' sections
SECTION_KEYS = {
    'sync': {'source', 'paths', 'gzip', 'exclude'},
    'redirect': {'source_domains', 'target_domain', 'redirect_type', 'redirect_path'},
}


def split_list(value):
    """Accept 'a.com,b.com', 'a.com b.com' or a YAML list; return a clean list."""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        items = value
    else:
        items = str(value).replace(',', ' ').split()
    return [str(item).strip() for item in items if str(item).strip()]


def load_config(config_file):
    """
    Load and validate a YAML configuration file.
    Returns a flat dict of option name -> value. Exits on invalid input.
    """
    try:
        with open(config_file, 'r') as f:
            config = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        print(f"Error loading configuration: {e}")
        sys.exit(1)

    if config is None:
        return {}
    if not isinstance(config, dict):
        print(f"Error: configuration file {config_file} must contain a mapping of options")
        sys.exit(1)

    result = {}
    for key, value in config.items():
        if key in SECTION_KEYS:
            if not isinstance(value, dict):
                print(f"Error: '{key}' section in {config_file} must be a mapping")
                sys.exit(1)
            for sub_key, sub_value in value.items():
                if sub_key not in SECTION_KEYS[key]:
                    print(f"Error: unknown option '{key}.{sub_key}' in {config_file}")
                    sys.exit(1)
                result[sub_key] = sub_value
        elif key in ALLOWED_KEYS:
            result[key] = value
        else:
            print(f"Error: unknown option '{key}' in {config_file}")
            print(f"  Allowed options: {', '.join(sorted(ALLOWED_KEYS | set(SECTION_KEYS)))}")
            sys.exit(1)

    if 'source_domains' in result:
        result['source_domains'] = split_list(result['source_domains'])
    if 'paths' in result:
        result['paths'] = split_list(result['paths'])
    if 'redirect_type' in result:
        result['redirect_type'] = str(result['redirect_type'])
    return result


def merge_options(options, config):
    """
    Fill options that were not given on the command line from the config dict.

    Args:
        options: Dict of parsed command-line options (None means "not given").
        config: Dict returned by load_config().
    """
    merged = dict(options)
    for key, value in config.items():
        if merged.get(key) in (None, False, []):
            merged[key] = value
    return merged
