import logging
import os
import zipfile

from cumulus_ecs_task.exceptions import ExtractionError

LOG = logging.getLogger(__name__)


def unzip(path: str, target_dir: str) -> None:
    """
    Extracts the zip archive at ``path`` into ``target_dir``, preserving the file permissions stored in the
    archive. Existing files are overwritten.

    :raises ExtractionError: if the archive cannot be opened or one of its entries cannot be extracted
    """
    try:
        zip_ref = zipfile.ZipFile(path, "r")
    except (OSError, zipfile.BadZipFile) as e:
        LOG.warning("Unable to open zip file: %s: %s", path, e)
        raise ExtractionError(f"Unable to open zip file {path}: {e}") from e

    def _unzip_file_entry(file_entry: zipfile.ZipInfo):
        """Extracts a Zipfile entry and preserves permissions"""
        out_path = zip_ref.extract(file_entry, path=target_dir)
        perm = file_entry.external_attr >> 16
        # directories keep the permissions they were created with unless the archive stores some
        if perm or not file_entry.is_dir():
            os.chmod(out_path, perm or 0o777)

    try:
        for file_entry in zip_ref.infolist():
            _unzip_file_entry(file_entry)
    except (OSError, zipfile.BadZipFile, EOFError) as e:
        raise ExtractionError(f"Unable to extract {path} to {target_dir}: {e}") from e
    finally:
        zip_ref.close()
    LOG.debug("Extracted %s to %s", path, target_dir)
