import logging
import os
import shutil

LOG = logging.getLogger(__name__)


def mkdir(folder: str):
    if not os.path.exists(folder):
        os.makedirs(folder, exist_ok=True)


def chmod_r(path: str, mode: int):
    """Recursive chmod"""
    if not os.path.exists(path):
        return
    os.chmod(path, mode)
    for root, dirnames, filenames in os.walk(path):
        for dirname in dirnames:
            os.chmod(os.path.join(root, dirname), mode)
        for filename in filenames:
            os.chmod(os.path.join(root, filename), mode)


def rm_rf(path: str):
    """
    Recursively removes a file or directory
    """
    if not path or not os.path.lexists(path):
        return
    if os.path.islink(path) or not os.path.isdir(path):
        os.remove(path)
        return
    # extracted archives may contain read-only entries
    try:
        chmod_r(path, 0o777)
    except PermissionError as e:
        LOG.debug("Unable to make %s writable: %s", path, e)
    shutil.rmtree(path)


def recreate_dir(path: str):
    """Removes the given directory (if it exists) and creates it again, empty."""
    rm_rf(path)
    mkdir(path)
