# -*- coding: utf-8 -*-
"""
Configuration management for SharePoint migration.

Values come from four layers, highest precedence first:

1. Command-line flags
2. JSON config file (--config), camelCase keys
3. Environment variables (a .env file is loaded with python-dotenv)
4. Built-in defaults
"""

import argparse
import json
import os
from dotenv import load_dotenv
from .driver import COLLISION_POLICIES, MAX_WORKERS_LIMIT
from .exceptions import ConfigError
from .lookup import DEFAULT_STRATEGIES
from .utils import parse_iso_datetime

CONFIG_DEFAULTS = {
    'libraryName': 'Documents',
    'outputDirectory': './migration_reports',
    'graphEndpoint': 'graph.microsoft.com',
    'loginEndpoint': 'login.microsoftonline.com',
    'maxRetry': 3,
    'requestTimeout': 120,
    'collisionPolicy': 'keep_last',
    'probeLocks': False,
}

# Secrets and connection settings that may come from the environment
ENV_KEYS = {
    'tenantId': 'SP_TENANT_ID',
    'clientId': 'SP_CLIENT_ID',
    'clientSecret': 'SP_CLIENT_SECRET',
    'certificateThumbprint': 'SP_CERT_THUMBPRINT',
    'certificatePath': 'SP_CERT_PATH',
    'siteUrl': 'SP_SITE_URL',
}

# (config key, flag, argparse kwargs)
CONFIG_FLAGS = [
    ('tenantId', '--tenant-id', {}),
    ('clientId', '--client-id', {}),
    ('clientSecret', '--client-secret', {}),
    ('certificateThumbprint', '--certificate-thumbprint', {}),
    ('certificatePath', '--certificate-path', {}),
    ('siteUrl', '--site-url', {}),
    ('fileServerPath', '--file-server-path', {}),
    ('rootFolderName', '--root-folder-name', {}),
    ('libraryName', '--library-name', {}),
    ('startDate', '--start-date', {}),
    ('endDate', '--end-date', {}),
    ('sharePointBasePath', '--sharepoint-base-path', {}),
    ('excludePatterns', '--exclude-pattern', {'action': 'append'}),
    ('libraryAliases', '--library-alias', {'action': 'append'}),
    ('lookupStrategies', '--lookup-strategy', {'action': 'append'}),
    ('collisionPolicy', '--collision-policy', {'choices': COLLISION_POLICIES}),
    ('outputDirectory', '--output-directory', {}),
    ('graphEndpoint', '--graph-endpoint', {}),
    ('loginEndpoint', '--login-endpoint', {}),
    ('maxRetry', '--max-retry', {'type': int}),
    ('requestTimeout', '--request-timeout', {'type': int}),
    ('probeLocks', '--probe-locks', {'action': 'store_const', 'const': True}),
]


def build_parser():
    """Build the command-line parser."""
    parser = argparse.ArgumentParser(
        prog='sharepoint-migration',
        description='Reconcile a file server share with a SharePoint library and optionally migrate the differences.',
    )
    parser.add_argument('--config', help='JSON config file')

    run = parser.add_argument_group('run')
    run.add_argument('--migrate', action='store_true',
                     help='Upload Migrate/CanMigrate files (default: dry run)')
    run.add_argument('--tolerance-seconds', type=float, default=2.0,
                     help='Timestamps closer than this are considered equal (default: 2)')
    run.add_argument('--preview-count', type=int, default=20,
                     help='Planned actions printed and logged (default: 20)')
    run.add_argument('--stop-after', type=int, default=0,
                     help='Stop after N upload attempts (default: 0 = unlimited)')
    run.add_argument('--fail-fast', action='store_true', help='Abort on the first failed upload')
    run.add_argument('--include-can-migrate', action='store_true',
                     help='Upload files that are newer on the file server')
    run.add_argument('--mode', choices=('batch', 'streaming'), default='batch')
    run.add_argument('--max-workers', type=int, default=1,
                     help=f'Concurrent files (default: 1, max: {MAX_WORKERS_LIMIT})')
    run.add_argument('--confirm-threshold', type=int, default=500,
                     help='Ask before uploading more files than this in batch mode (default: 500)')
    run.add_argument('--yes', action='store_true', help='Do not ask for confirmation')
    run.add_argument('--debug', action='store_true', help='Per-file debug output')
    run.add_argument('--debug-metadata', action='store_true', help='Graph API debug output')

    overrides = parser.add_argument_group('config overrides')
    for key, flag, kwargs in CONFIG_FLAGS:
        overrides.add_argument(flag, dest=key, default=None, **kwargs)
    overrides.add_argument('--simplify-folders', action='store_const', const=True, default=None,
                           help='Truncate folder names at the first "(" or " -"')
    overrides.add_argument('--remove-pattern', default=None,
                           help='Regex removed from every folder name')
    return parser


def load_config_file(path):
    """
    Read the JSON config object.

    Raises:
        ConfigError: File missing, unreadable or not a JSON object
    """
    try:
        with open(path, 'r', encoding='utf-8-sig') as f:
            data = json.load(f)
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e
    except ValueError as e:
        raise ConfigError(f"Config file {path} is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a JSON object")
    return data


def _as_list(value):
    if value is None:
        return None
    if isinstance(value, str):
        return [item.strip() for item in value.split(',') if item.strip()]
    return list(value)


def _as_bool(value):
    if isinstance(value, str):
        return value.strip().lower() in ('1', 'true', 'yes')
    return bool(value)


class Config:
    """
    Configuration for a SharePoint migration run.

    Args:
        argv (list): Command-line arguments (defaults to sys.argv[1:])
        environ (dict): Environment to read secrets from (defaults to os.environ)
    """

    def __init__(self, argv=None, environ=None):
        args = build_parser().parse_args(argv)
        environ = os.environ if environ is None else environ
        file_values = load_config_file(args.config) if args.config else {}
        self.config_path = args.config

        def pick(key):
            cli_value = getattr(args, key)
            if cli_value is not None:
                return cli_value
            if file_values.get(key) not in (None, ''):
                return file_values[key]
            env_name = ENV_KEYS.get(key)
            if env_name and environ.get(env_name):
                return environ[env_name]
            return CONFIG_DEFAULTS.get(key)

        # Connection
        self.tenant_id = pick('tenantId')
        self.client_id = pick('clientId')
        self.client_secret = pick('clientSecret')
        self.cert_thumbprint = pick('certificateThumbprint')
        self.cert_path = pick('certificatePath')
        self.site_url = pick('siteUrl')
        self.library_name = pick('libraryName')
        self.graph_endpoint = pick('graphEndpoint')
        self.login_endpoint = pick('loginEndpoint')

        # Source and destination layout
        self.file_server_path = pick('fileServerPath')
        self.root_folder_name = pick('rootFolderName')
        self.sharepoint_base_path = pick('sharePointBasePath')
        self.exclude_patterns = _as_list(pick('excludePatterns')) or []
        self.library_aliases = _as_list(pick('libraryAliases'))
        self.lookup_strategies = _as_list(pick('lookupStrategies'))
        self.collision_policy = pick('collisionPolicy')
        self.output_directory = pick('outputDirectory')
        self.probe_locks = _as_bool(pick('probeLocks'))

        self.folder_name_transform = dict(file_values.get('folderNameTransform') or {})
        if args.simplify_folders is not None:
            self.folder_name_transform['simplifyFolders'] = True
        if args.remove_pattern is not None:
            self.folder_name_transform['removePattern'] = args.remove_pattern

        try:
            self.max_retry = int(pick('maxRetry'))
            self.request_timeout = int(pick('requestTimeout'))
        except (TypeError, ValueError) as e:
            raise ConfigError(f"maxRetry and requestTimeout must be integers: {e}") from e

        try:
            self.start_date = parse_iso_datetime(pick('startDate'))
            # A date-only end bound covers that whole day
            self.end_date = parse_iso_datetime(pick('endDate'), end_of_day=True)
        except ValueError as e:
            raise ConfigError(f"Invalid startDate/endDate: {e}") from e

        # Run switches (command line only)
        self.migrate = args.migrate
        self.tolerance_seconds = args.tolerance_seconds
        self.preview_count = args.preview_count
        self.stop_after = args.stop_after
        self.fail_fast = args.fail_fast
        self.include_can_migrate = args.include_can_migrate
        self.mode = args.mode
        self.max_workers = min(max(1, args.max_workers), MAX_WORKERS_LIMIT)
        self.confirm_threshold = args.confirm_threshold
        self.assume_yes = args.yes
        self.debug = args.debug
        self.debug_metadata = args.debug_metadata

    @property
    def source_root_name(self):
        """Destination root folder: override, else last segment of the source path."""
        if self.root_folder_name:
            return self.root_folder_name.strip('/\\')
        path = (self.file_server_path or '').rstrip('/\\')
        return path.replace('\\', '/').rsplit('/', 1)[-1]

    def validate(self):
        """
        Validate configuration values.

        Raises:
            ConfigError: If configuration is invalid
        """
        missing = [name for name, value in (
            ('tenantId', self.tenant_id),
            ('clientId', self.client_id),
            ('siteUrl', self.site_url),
            ('fileServerPath', self.file_server_path),
        ) if not value]
        if missing:
            raise ConfigError(f"Missing required setting(s): {', '.join(missing)}")

        has_certificate = bool(self.cert_thumbprint and self.cert_path)
        if not has_certificate and not self.client_secret:
            raise ConfigError(
                "A credential is required: certificateThumbprint and certificatePath, or clientSecret"
            )
        if bool(self.cert_thumbprint) != bool(self.cert_path) and not self.client_secret:
            raise ConfigError("certificateThumbprint and certificatePath must be set together")

        if not self.site_url.lower().startswith('https://'):
            raise ConfigError(f"siteUrl must be an https URL: {self.site_url}")
        if not self.source_root_name:
            raise ConfigError("Cannot derive the root folder name; set rootFolderName")
        if self.collision_policy not in COLLISION_POLICIES:
            raise ConfigError(f"collisionPolicy must be one of {', '.join(COLLISION_POLICIES)}")
        for strategy in self.lookup_strategies or []:
            if strategy not in DEFAULT_STRATEGIES:
                raise ConfigError(f"Unknown lookup strategy: {strategy}")
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ConfigError("startDate must not be after endDate")
        if self.max_retry < 0:
            raise ConfigError("maxRetry must be non-negative")
        if self.request_timeout <= 0:
            raise ConfigError("requestTimeout must be positive")
        if self.tolerance_seconds < 0:
            raise ConfigError("--tolerance-seconds must be non-negative")
        if self.stop_after < 0:
            raise ConfigError("--stop-after must be non-negative")
        if self.preview_count < 0:
            raise ConfigError("--preview-count must be non-negative")

        _validate_folder_name_transform(self.folder_name_transform)


def _validate_folder_name_transform(transform):
    """
    Check the shape of folderNameTransform before any path is mapped.

    Raises:
        ConfigError: On a malformed mapping entry or a non-string removePattern
    """
    if not transform:
        return
    name_mappings = transform.get('nameMappings') or []
    if isinstance(name_mappings, list):
        for entry in name_mappings:
            if isinstance(entry, dict):
                has_source = entry.get('from', entry.get('source')) is not None
                has_target = entry.get('to', entry.get('target')) is not None
                if not (has_source and has_target):
                    raise ConfigError(f"folderNameTransform.nameMappings entry needs 'from' and 'to': {entry}")
            elif not isinstance(entry, (list, tuple)) or len(entry) != 2:
                raise ConfigError(
                    f"folderNameTransform.nameMappings entry must be a [from, to] pair or an object: {entry!r}"
                )
    elif not isinstance(name_mappings, dict):
        raise ConfigError("folderNameTransform.nameMappings must be a list or an object")

    remove_pattern = transform.get('removePattern')
    if remove_pattern is not None and not isinstance(remove_pattern, str):
        raise ConfigError(f"folderNameTransform.removePattern must be a string: {remove_pattern!r}")

    collapse_prefixes = transform.get('collapsePrefixes')
    if collapse_prefixes is not None and (
            not isinstance(collapse_prefixes, list) or not all(isinstance(p, str) for p in collapse_prefixes)):
        raise ConfigError("folderNameTransform.collapsePrefixes must be a list of strings")


def parse_config(argv=None):
    """
    Parse configuration from the command line, config file and environment.

    Returns:
        Config: Validated Config object

    Raises:
        ConfigError: If configuration is invalid
    """
    load_dotenv()
    config = Config(argv)
    config.validate()
    return config
