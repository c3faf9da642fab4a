from cumulus_ecs_task.version import __version__  # noqa: F401
