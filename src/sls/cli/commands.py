"""
``sls`` command line: inspect, export, import and delete service
configuration, and deploy features.

    sls env [FEATURE] [--names-only]
    sls env export [FEATURE] [--file PATH] [--names-only]
    sls pstore [FEATURE]
    sls pstore import [--file PATH | --from-env] [--overwrite]
    sls pstore export [FEATURE] [--file PATH]
    sls pstore delete [KEY] [--all] [--feature NAME]
    sls deploy FEATURE [--env-only]

Every command accepts the global flags (``--env`` is required, falling back to
the ``ENV`` environment variable). Commands reading env vars need the
features' env models, attached by the function named with ``--config-module``::

    # orders_config.py
    def configure_service(service):
        service.configure_feature('create', EnvModelConfig(CreateEnvVars))
"""

import argparse
import os
import sys
from typing import Callable, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError

from sls.cli.infra import CmdConfig, Infra
from sls.handlers.utils.failures import BaseServiceError, InvalidParamError
from sls.handlers.utils.observability import configure_cli_logging, logger
from sls.logic import deploy as deploy_logic
from sls.logic import params as params_logic
from sls.logic.env_report import feature_env_report, service_env_report
from sls.models.naming import DEFAULT_REGION

PROG = 'sls'

ENV_ACTIONS = ('export',)
PSTORE_ACTIONS = ('import', 'export', 'delete')


def _env_flag(name: str) -> bool:
    return os.environ.get(name, '').strip().lower() in ('1', 'true', 'yes')


def _add_global_flags(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        '--env', '-e',
        default=os.environ.get('ENV'),
        help='Application env (default: $ENV)'
    )
    parser.add_argument(
        '--aws-region',
        default=os.environ.get('AWS_REGION', DEFAULT_REGION.value),
        help=f'AWS region (default: $AWS_REGION or {DEFAULT_REGION.value})'
    )
    parser.add_argument(
        '--aws-profile',
        default=os.environ.get('AWS_PROFILE'),
        help='AWS credentials profile (default: $AWS_PROFILE)'
    )
    parser.add_argument(
        '--root-dir',
        default=os.environ.get('SLS_ROOT_DIR', '.'),
        help='Service repository root (default: current directory)'
    )
    parser.add_argument(
        '--app',
        default=os.environ.get('SLS_APP', ''),
        help='Service label (default: name of the root directory)'
    )
    parser.add_argument('--verbose', '-v', action='store_true', help='Show verbose output')
    parser.add_argument('--all', '-a', dest='is_all', action='store_true', help='Apply to the whole service')
    parser.add_argument('--skip-defaults', action='store_true', help='Skip default values')
    parser.add_argument(
        '--name-includes-trigger', '-t',
        dest='with_trigger',
        action='store_true',
        help='Feature name is given with its trigger (ex apigw_feature)'
    )
    parser.add_argument(
        '--text',
        dest='is_text',
        action='store_true',
        default=_env_flag('CLI_FORMAT_TEXT'),
        help='Use plain text instead of json'
    )
    parser.add_argument(
        '--qualified-name',
        dest='is_qualified_name',
        action='store_true',
        default=_env_flag('QUALIFIED_NAMES'),
        help='Display names as fully qualified'
    )
    parser.add_argument(
        '--config-module',
        default=os.environ.get('SLS_CONFIG_MODULE', ''),
        help='Module (or module:function) attaching env configurations to features (default: $SLS_CONFIG_MODULE)'
    )
    parser.add_argument(
        '--encrypt',
        dest='is_encrypt',
        action=argparse.BooleanOptionalAction,
        default=True,
        help='Use decryption for parameter store (default: on)'
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=PROG,
        description='Manage configuration and deployments of a serverless microservice'
    )
    commands = parser.add_subparsers(dest='command', metavar='COMMAND')
    commands.required = True

    env = commands.add_parser('env', help='display environment variables for a lambda')
    env.add_argument('target', nargs='*', metavar='[export] FEATURE', help='feature name, optionally preceded by export')
    env.add_argument('--names-only', action='store_true', help='Only display the env var names')
    env.add_argument('--file', '-f', help='Export to a json file')
    _add_global_flags(env)

    pstore = commands.add_parser('pstore', help='display parameter store values for a lambda')
    pstore.add_argument(
        'target',
        nargs='*',
        metavar='[import|export|delete] FEATURE_OR_KEY',
        help='feature name (or key for delete), optionally preceded by an action'
    )
    pstore.add_argument('--file', '-f', help='Json file to import from or export to')
    pstore.add_argument(
        '--from-env',
        dest='import_from_env',
        action='store_true',
        help='Import values from env vars on your machine'
    )
    pstore.add_argument('--overwrite', action='store_true', help='Replace values that already exist')
    pstore.add_argument('--feature', default='', help='With --all, delete only the params of this feature')
    _add_global_flags(pstore)

    deploy = commands.add_parser('deploy', help='deploy lambdas to aws')
    deploy.add_argument('feature', help='feature to deploy')
    deploy.add_argument('--env-only', action='store_true', help='Only update environment variables')
    _add_global_flags(deploy)

    return parser


def to_cmd_config(args: argparse.Namespace) -> CmdConfig:
    if not args.env:
        raise InvalidParamError('[env] application env is required, use --env or set ENV')

    try:
        return CmdConfig(
            env=args.env,
            aws_region=args.aws_region,
            aws_profile=args.aws_profile or None,
            root_dir=args.root_dir,
            app=args.app,
            verbose=args.verbose,
            is_all=args.is_all,
            skip_defaults=args.skip_defaults,
            with_trigger=args.with_trigger,
            is_text=args.is_text,
            is_qualified_name=args.is_qualified_name,
            is_encrypt=args.is_encrypt,
            config_module=args.config_module or '',
        )
    except PydanticValidationError as e:
        raise InvalidParamError(f'invalid command configuration: {e}') from e


def _split_action(target: List[str], actions: tuple) -> tuple:
    if target and target[0] in actions:
        return target[0], target[1:]
    return None, target


def _first(values: List[str]) -> str:
    return values[0] if values else ''


def run_env(infra: Infra, config: CmdConfig, args: argparse.Namespace) -> None:
    action, rest = _split_action(args.target, ENV_ACTIONS)
    file = args.file if action == 'export' else None

    if config.is_all:
        service = infra.load_service(config)
        result, conflicts = service_env_report(
            service,
            skip_defaults=config.skip_defaults,
            names_only=args.names_only,
            with_trigger=config.with_trigger,
        )
        if conflicts:
            infra.display_error_json(conflicts)
        infra.output(config, result, file=file, title=str(service))
        return

    name = _first(rest)
    if not name:
        raise InvalidParamError('feature or --all flag is required')

    _, feature = infra.load_feature(config, name)
    result = feature_env_report(feature.config, config.skip_defaults, args.names_only)
    infra.output(config, result, file=file, title=infra.feature_key(config, feature))


def run_pstore(infra: Infra, config: CmdConfig, args: argparse.Namespace) -> None:
    action, rest = _split_action(args.target, PSTORE_ACTIONS)
    handlers: Dict[Optional[str], Callable[[Infra, CmdConfig, argparse.Namespace, List[str]], None]] = {
        None: run_pstore_show,
        'import': run_pstore_import,
        'export': run_pstore_export,
        'delete': run_pstore_delete,
    }
    handlers[action](infra, config, args, rest)


def run_pstore_show(infra: Infra, config: CmdConfig, args: argparse.Namespace, rest: List[str]) -> None:
    store = infra.param_store(config)
    if config.is_all:
        service = infra.load_service(config)
        infra.output(config, params_logic.service_params(store, service.app_title))
        return

    name = _first(rest)
    if not name:
        raise InvalidParamError('feature name is missing')

    service, feature = infra.load_feature(config, name)
    infra.output(config, params_logic.feature_params(store, service.app_title, feature))


def run_pstore_export(infra: Infra, config: CmdConfig, args: argparse.Namespace, rest: List[str]) -> None:
    store = infra.param_store(config)
    if config.is_all:
        service = infra.load_service(config)
        result = params_logic.service_params(store, service.app_title)
    else:
        name = _first(rest)
        if not name:
            raise InvalidParamError('feature name is missing')
        service, feature = infra.load_feature(config, name)
        result = params_logic.feature_params(store, service.app_title, feature)

    infra.output(config, params_logic.strip_app_title(service.app_title, result), file=args.file)


def run_pstore_import(infra: Infra, config: CmdConfig, args: argparse.Namespace, rest: List[str]) -> None:
    if args.file and args.import_from_env:
        raise InvalidParamError('--file and --from-env can not be used together')

    store = infra.param_store(config)
    service = infra.load_service(config)
    app_title = service.app_title

    if args.file:
        params = params_logic.read_params_from_file(os.path.expanduser(args.file))
    else:
        params = params_logic.read_params_from_service(service)

    backup, errors = params_logic.import_params(store, app_title, params, overwrite=args.overwrite)
    if errors:
        infra.display_error_json([str(e) for e in errors])
    infra.display_json(backup)


def run_pstore_delete(infra: Infra, config: CmdConfig, args: argparse.Namespace, rest: List[str]) -> None:
    store = infra.param_store(config)

    if config.is_all:
        if args.feature:
            service, feature = infra.load_feature(config, args.feature)
            result = params_logic.delete_all_feature_params(store, service.app_title, feature)
        else:
            service = infra.load_service(config)
            result = params_logic.delete_all_service_params(store, service.app_title)
        infra.display_json(result)
        return

    key = _first(rest)
    if not key:
        raise InvalidParamError('parameter name is missing')

    service = infra.load_service(config)
    infra.display_json(params_logic.delete_param(store, service.app_title, key))


def run_deploy(infra: Infra, config: CmdConfig, args: argparse.Namespace) -> None:
    service, feature = infra.load_feature(config, args.feature)
    deployer = infra.deployer(config)

    if args.env_only:
        report = deploy_logic.deploy_feature_config(infra.param_store(config), deployer, service.app_title, feature)
    else:
        report = deploy_logic.deploy_feature_code(deployer, feature, service.new_build_settings(feature))

    if config.verbose:
        infra.display_json(report.model_dump(mode='json'))


COMMANDS = {
    'env': run_env,
    'pstore': run_pstore,
    'deploy': run_deploy,
}


def main(argv: Optional[List[str]] = None, infra: Optional[Infra] = None) -> int:
    """Run one command; the return value is the process exit code."""
    infra = infra or Infra()
    args = build_parser().parse_args(argv)
    configure_cli_logging(logger, verbose=args.verbose, stream=infra.stderr)

    try:
        config = to_cmd_config(args)
        COMMANDS[args.command](infra, config, args)
    except BaseServiceError as e:
        logger.debug('command failed', extra={'command': args.command, 'error': e.to_dict()})
        return infra.check_failure(e)

    return 0


def run() -> None:
    sys.exit(main())
