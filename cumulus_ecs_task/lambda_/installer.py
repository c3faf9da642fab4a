"""
Installation of a Lambda function package (and its layers) onto the local filesystem.

The installer looks up the function via the Lambda API, downloads the deployment package and the attached layer
archives from the pre-signed URLs returned by the API, extracts them, and loads the handler configured for the
function.
"""
import dataclasses
import importlib.util
import logging
import os
import sys
import time
from typing import Any, Callable, List, Optional

from botocore.client import BaseClient
from botocore.exceptions import BotoCoreError, ClientError

from cumulus_ecs_task import config
from cumulus_ecs_task.aws.connect import connect_to
from cumulus_ecs_task.constants import (
    ENV_MESSAGE_ADAPTER_DIR,
    FUNCTION_ARCHIVE_NAME,
    MESSAGE_ADAPTER_DIR_NAME,
)
from cumulus_ecs_task.exceptions import DownloadError, ResolutionError, TransportError
from cumulus_ecs_task.utils.archives import unzip
from cumulus_ecs_task.utils.arns import lambda_function_name
from cumulus_ecs_task.utils.files import mkdir
from cumulus_ecs_task.utils.http import download
from cumulus_ecs_task.utils.sync import BackoffPolicy, retry_with_backoff
from cumulus_ecs_task.utils.threads import parallelize

LOG = logging.getLogger(__name__)


@dataclasses.dataclass
class LayerArtifact:
    name: str
    url: str


@dataclasses.dataclass
class FunctionSource:
    """The downloadable parts of a function, as described by the Lambda API."""

    function_name: str
    function_arn: Optional[str]
    code_url: str
    handler: str
    layers: List[LayerArtifact] = dataclasses.field(default_factory=list)
    memory_size: Optional[int] = None
    timeout: Optional[int] = None


@dataclasses.dataclass
class EntryPoint:
    """
    A handler function loaded from an installed package, together with the function attributes the invocation
    context is built from. Calling it calls the handler.
    """

    handler: Callable
    function_name: str
    function_arn: Optional[str] = None
    memory_size: Optional[int] = None
    timeout: Optional[int] = None

    def __call__(self, event: Any, context: Any) -> Any:
        return self.handler(event, context)


def default_backoff_policy() -> BackoffPolicy:
    return BackoffPolicy(
        initial_interval=config.DOWNLOAD_RETRY_INITIAL_INTERVAL,
        max_retries=config.DOWNLOAD_MAX_RETRIES,
    )


def is_timeout_error(error: Exception) -> bool:
    return isinstance(error, TimeoutError)


def set_message_adapter_dir(task_dir: str, layers_dir: str) -> str:
    """
    Points ``CUMULUS_MESSAGE_ADAPTER_DIR`` at the message adapter bundled with the task, if there is one, or at
    the layers directory otherwise.
    """
    bundled = os.path.join(task_dir, MESSAGE_ADAPTER_DIR_NAME)
    adapter_dir = bundled if os.path.exists(bundled) else layers_dir
    LOG.info("Setting CMA path to %s", adapter_dir)
    os.environ[ENV_MESSAGE_ADAPTER_DIR] = adapter_dir
    return adapter_dir


def handler_search_paths(task_dir: str, layers_dir: str) -> List[str]:
    """Returns the directories the handler module (and its dependencies) can be imported from."""
    paths = [task_dir]
    layer_python = os.path.join(layers_dir, "python")
    if os.path.isdir(layer_python):
        paths.append(layer_python)
        version_dir = os.path.join(
            layer_python, "lib", f"python{sys.version_info[0]}.{sys.version_info[1]}", "site-packages"
        )
        if os.path.isdir(version_dir):
            paths.append(version_dir)
    return paths


def load_handler(task_dir: str, handler: str, search_paths: List[str] = None) -> Callable:
    """
    Loads the function named by a Lambda handler string from the given task directory. The handler string has the
    form ``<module>.<function>``, where nested modules are given as ``pkg/mod`` or ``pkg.mod``.

    :raises ResolutionError: if the module cannot be found or imported, or does not define a callable function
    """
    module_part, _, function_name = (handler or "").rpartition(".")
    if not module_part or not function_name:
        raise ResolutionError(f"Invalid handler {handler!r}, expected <module>.<function>")

    module_name = module_part.replace("/", ".")
    relative_path = module_name.replace(".", os.sep)
    candidates = [
        os.path.join(task_dir, f"{relative_path}.py"),
        os.path.join(task_dir, relative_path, "__init__.py"),
    ]
    module_file = next((path for path in candidates if os.path.isfile(path)), None)
    if not module_file:
        raise ResolutionError(f"Unable to find module {module_name!r} of handler {handler!r} in {task_dir}")

    for path in reversed(search_paths or [task_dir]):
        if path not in sys.path:
            sys.path.insert(0, path)

    spec = importlib.util.spec_from_file_location(module_name, module_file)
    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    try:
        spec.loader.exec_module(module)
    except Exception as e:
        sys.modules.pop(module_name, None)
        LOG.exception("Unable to import handler module %s", module_file)
        raise ResolutionError(f"Unable to import module {module_name!r}: {type(e).__name__}: {e}") from e

    function = getattr(module, function_name, None)
    if not callable(function):
        raise ResolutionError(f"Module {module_name!r} does not define a function {function_name!r}")
    return function


class PackageInstaller:
    """
    Downloads, extracts and loads a Lambda function. Downloads that time out are retried with exponential
    backoff, any other download failure is raised immediately.
    """

    def __init__(
        self,
        lambda_client: BaseClient = None,
        backoff_policy: BackoffPolicy = None,
        download_timeout: float = None,
    ):
        self.lambda_client = lambda_client or connect_to().lambda_
        self.backoff_policy = backoff_policy or default_backoff_policy()
        self.download_timeout = (
            config.DOWNLOAD_TIMEOUT if download_timeout is None else download_timeout
        )

    def install(self, function_id: str, work_dir: str, task_dir: str, layers_dir: str) -> EntryPoint:
        """
        Installs the given function and returns its entry point.

        :param function_id: the name or ARN of the Lambda function
        :param work_dir: the directory the function package is downloaded to
        :param task_dir: the directory the function package is extracted to
        :param layers_dir: the directory the layers are downloaded and extracted to
        :raises DownloadError: if an archive cannot be downloaded
        :raises ExtractionError: if an archive cannot be extracted
        :raises ResolutionError: if the handler of the function cannot be loaded
        """
        start = time.time()
        source = self.get_function_source(function_id)

        for directory in (work_dir, task_dir, layers_dir):
            mkdir(directory)

        layer_archives = self.download_layers(source.layers, layers_dir)
        function_archive = os.path.join(work_dir, FUNCTION_ARCHIVE_NAME)
        self.download_file(source.code_url, function_archive)

        for archive in layer_archives:
            unzip(archive, layers_dir)
        unzip(function_archive, task_dir)

        set_message_adapter_dir(task_dir, layers_dir)

        handler = load_handler(task_dir, source.handler, handler_search_paths(task_dir, layers_dir))
        LOG.info(
            "Installed function %s (handler %s) in %.2f seconds",
            source.function_name,
            source.handler,
            time.time() - start,
        )
        return EntryPoint(
            handler=handler,
            function_name=source.function_name,
            function_arn=source.function_arn,
            memory_size=source.memory_size,
            timeout=source.timeout,
        )

    def get_function_source(self, function_id: str) -> FunctionSource:
        """Looks up the code location, handler and layers of the given function."""
        try:
            response = self.lambda_client.get_function(FunctionName=function_id)
        except (ClientError, BotoCoreError) as e:
            raise TransportError(f"Unable to get function {function_id}: {e}") from e

        configuration = response.get("Configuration") or {}
        code_url = (response.get("Code") or {}).get("Location")
        if not code_url:
            raise ResolutionError(f"No code location returned for function {function_id}")
        if not configuration.get("Handler"):
            raise ResolutionError(f"No handler configured for function {function_id}")

        layer_arns = [layer["Arn"] for layer in configuration.get("Layers") or []]
        # layer versions are independent lookups
        layers = parallelize(self.get_layer_artifact, layer_arns)

        return FunctionSource(
            function_name=configuration.get("FunctionName") or lambda_function_name(function_id),
            function_arn=configuration.get("FunctionArn"),
            code_url=code_url,
            handler=configuration["Handler"],
            layers=layers,
            memory_size=configuration.get("MemorySize"),
            timeout=configuration.get("Timeout"),
        )

    def get_layer_artifact(self, layer_version_arn: str) -> LayerArtifact:
        try:
            layer = self.lambda_client.get_layer_version_by_arn(Arn=layer_version_arn)
        except (ClientError, BotoCoreError) as e:
            raise TransportError(f"Unable to get layer version {layer_version_arn}: {e}") from e
        LOG.info("Adding layer %s to container", layer_version_arn)
        return LayerArtifact(
            name=lambda_function_name(layer.get("LayerArn") or layer_version_arn),
            url=layer["Content"]["Location"],
        )

    def download_layers(self, layers: List[LayerArtifact], layers_dir: str) -> List[str]:
        """Downloads all given layers in parallel, returning the paths of the downloaded archives."""

        def _download(layer: LayerArtifact) -> str:
            path = os.path.join(layers_dir, f"{layer.name}.zip")
            self.download_file(layer.url, path)
            return path

        return parallelize(_download, layers)

    def download_file(self, url: str, path: str) -> None:
        """
        Downloads the given URL to the given path, retrying on timeouts.

        :raises DownloadError: if the download fails for any other reason, or all retries time out
        """
        try:
            retry_with_backoff(
                lambda: download(url, path, timeout=self.download_timeout),
                policy=self.backoff_policy,
                retry_on=is_timeout_error,
            )
        except TimeoutError as e:
            raise DownloadError(f"Giving up download of {path}: {e}") from e
