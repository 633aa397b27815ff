"""
Build pipeline for Go features: cross compile the feature for Linux and pack
the binary as the single ``bootstrap`` entry of a Lambda deployment zip.
"""

import os
import shutil
import subprocess
import zipfile
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from sls.handlers.utils.failures import InvalidParamError, SystemFailureError
from sls.handlers.utils.observability import logger
from sls.models.build import BuildResult, BuildSettings
from sls.models.feature import DEFAULT_BINARY_NAME

GO_BINARY_NAME = 'go'
GO_BUILD_CMD_NAME = 'build'
DEFAULT_LD_FLAGS = '-s -w'
# -rwxrwxrwx, stored in the high word of the zip external attributes
BOOTSTRAP_FILE_MODE = 0o777
ZIP_CREATE_SYSTEM_UNIX = 3

CommandRunner = Callable[..., subprocess.CompletedProcess]


@dataclass
class GoBuildCmd:
    args: List[str]
    cwd: str
    env: Dict[str, str] = field(default_factory=dict)
    output_path: str = ''


def new_go_build_cmd(
    output_dir: str,
    output_name: str,
    target_dir: str,
    version: Optional[str] = None,
) -> GoBuildCmd:
    """
    ``GOOS=linux go build`` of ``target_dir`` into ``output_dir/output_name``.

    Raises:
        InvalidParamError: a directory is missing or ``output_name`` is empty
        SystemFailureError: the go toolchain is not on the PATH
    """
    if not target_dir:
        raise InvalidParamError('[target_dir] is empty')
    if not os.path.isdir(target_dir):
        raise InvalidParamError(f'target_dir ({target_dir}) does not exist or is not readable')
    if not output_dir or not os.path.isdir(output_dir):
        raise InvalidParamError(f'output_dir ({output_dir}) does not exist or is not readable')
    if not output_name:
        raise InvalidParamError('output_name is empty')

    go_exec = shutil.which(GO_BINARY_NAME)
    if go_exec is None:
        raise SystemFailureError('go binary not found on PATH')

    ld_flags = DEFAULT_LD_FLAGS
    if version:
        ld_flags = f'{ld_flags} -X main.Version={version}'

    output_path = os.path.join(output_dir, output_name)
    env = dict(os.environ)
    env['GOOS'] = 'linux'

    return GoBuildCmd(
        args=[go_exec, GO_BUILD_CMD_NAME, f'-ldflags={ld_flags}', '-o', output_path, '.'],
        cwd=target_dir,
        env=env,
        output_path=output_path,
    )


def zip_binary(zip_path: str, binary_path: str) -> None:
    """Write ``binary_path`` into ``zip_path`` as an executable ``bootstrap`` entry."""
    try:
        with open(binary_path, 'rb') as f:
            data = f.read()
    except OSError as e:
        raise SystemFailureError(f'could not read binary ({binary_path}): {e}') from e

    info = zipfile.ZipInfo(DEFAULT_BINARY_NAME)
    info.create_system = ZIP_CREATE_SYSTEM_UNIX
    info.external_attr = BOOTSTRAP_FILE_MODE << 16
    info.compress_type = zipfile.ZIP_DEFLATED

    try:
        with zipfile.ZipFile(zip_path, 'w') as zf:
            zf.writestr(info, data)
    except OSError as e:
        raise SystemFailureError(f'could not write zip ({zip_path}): {e}') from e


def compile_feature(
    settings: BuildSettings,
    runner: CommandRunner = subprocess.run,
    version: Optional[str] = None,
) -> BuildResult:
    """Build a feature and, unless ``skip_zipping`` is set, package it."""
    result = BuildResult(settings=settings)
    cmd = new_go_build_cmd(settings.build_dir, settings.bin_name, settings.code_dir, version)

    logger.info('building feature', extra={'code_dir': settings.code_dir, 'output': cmd.output_path})
    try:
        runner(cmd.args, cwd=cmd.cwd, env=cmd.env, check=True)
    except subprocess.CalledProcessError as e:
        raise SystemFailureError(f'could not build ({settings.bin_name}), go build exited with {e.returncode}') from e
    except OSError as e:
        raise SystemFailureError(f'could not build ({settings.bin_name}): {e}') from e

    if settings.skip_zipping:
        return result

    if settings.zip_name:
        result.zip_name = settings.zip_name

    zip_binary(result.zip_path, result.binary_path)
    try:
        with open(result.zip_path, 'rb') as f:
            result.zip_data = f.read()
    except OSError as e:
        raise SystemFailureError(f'could not read zip ({result.zip_path}): {e}') from e

    return result
