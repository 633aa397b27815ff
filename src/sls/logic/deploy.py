"""
Deploy flows: push a feature's stored parameters as Lambda environment
variables, or rebuild and upload its code.
"""

from typing import Callable

from sls.dal import LambdaDeployments, ParamStorage
from sls.dal.lambda_deploy import CodePayload, FeatureSettings
from sls.handlers.utils.failures import BaseServiceError, SystemFailureError, wrap
from sls.handlers.utils.observability import logger
from sls.logic.build import compile_feature
from sls.logic.params import feature_params, strip_app_title
from sls.models.build import BuildResult, BuildSettings
from sls.models.feature import Feature
from sls.models.output import FeatureUpdateReport


def deploy_feature_config(
    store: ParamStorage,
    deployer: LambdaDeployments,
    app_title: str,
    feature: Feature,
) -> FeatureUpdateReport:
    """Replace the function's env vars with the feature's parameter store values."""
    try:
        env_vars = strip_app_title(app_title, feature_params(store, app_title, feature))
        report = deployer.update_config(FeatureSettings(
            qualified_name=feature.qualified_name,
            env_vars=env_vars,
        ))
    except BaseServiceError as e:
        raise wrap(e, f'deploy feature config failed ({feature.name})')

    logger.info('feature config deployed', extra={
        'feature': feature.qualified_name,
        'env_vars': sorted(env_vars),
    })
    return report


def deploy_feature_code(
    deployer: LambdaDeployments,
    feature: Feature,
    settings: BuildSettings,
    compiler: Callable[[BuildSettings], BuildResult] = compile_feature,
) -> FeatureUpdateReport:
    """Compile, zip and upload a feature."""
    try:
        result = compiler(settings)
        if result.zip_data is None:
            raise SystemFailureError('build produced no deployment package')

        report = deployer.update_code(CodePayload(
            qualified_name=feature.qualified_name,
            zip_file=result.zip_data,
        ))
    except BaseServiceError as e:
        raise wrap(e, f'deploy feature code failed ({feature.name})')

    logger.info('feature code deployed', extra={
        'feature': feature.qualified_name,
        'code_sha256': report.code_sha256,
    })
    return report
