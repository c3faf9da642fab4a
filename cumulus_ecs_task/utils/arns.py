import logging

from cumulus_ecs_task.constants import LAMBDA_ARN_NAME_FIELD, LAMBDA_ARN_PREFIX

LOG = logging.getLogger(__name__)


def is_lambda_arn(name_or_arn: str) -> bool:
    return name_or_arn.startswith(LAMBDA_ARN_PREFIX)


def lambda_function_name(name_or_arn: str) -> str:
    """
    Returns the function (or layer) name for the given Lambda ARN, or the given value if it is not an ARN.

    ``arn:aws:lambda:us-east-1:123456789012:function:my-function:1`` -> ``my-function``
    ``arn:aws:lambda:us-east-1:123456789012:layer:my-layer:3`` -> ``my-layer``
    """
    if is_lambda_arn(name_or_arn):
        parts = name_or_arn.split(":")
        if len(parts) > LAMBDA_ARN_NAME_FIELD:
            return parts[LAMBDA_ARN_NAME_FIELD]
        LOG.debug("Unable to extract function name from ARN %s", name_or_arn)
    return name_or_arn
