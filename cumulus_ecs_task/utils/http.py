import logging
import os
from typing import Optional

import requests

from cumulus_ecs_task.exceptions import DownloadError

# chunk size for file downloads
DOWNLOAD_CHUNK_SIZE = 1024 * 1024

LOG = logging.getLogger(__name__)


def download(url: str, path: str, timeout: Optional[float] = None, verify_ssl: bool = True) -> int:
    """
    Downloads the file at the given URL to the given path, creating parent directories as needed.

    Raises ``TimeoutError`` if the optional timeout (in secs) is reached while connecting or reading, and
    ``DownloadError`` for any other failure, including non-2xx responses.

    :return: the number of bytes written
    """

    # make sure we're creating a new session here to enable parallel file downloads
    s = requests.Session()

    # Use REQUESTS_CA_BUNDLE path. If it doesn't exist, use the method provided settings.
    _verify = os.getenv("REQUESTS_CA_BUNDLE", verify_ssl)

    r = None
    try:
        r = s.get(url, stream=True, verify=_verify, timeout=timeout)
        # check status code before attempting to read body
        if not r.ok:
            raise DownloadError(f"Failed to download {url}, response code {r.status_code}")

        total = 0
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        LOG.debug(
            "Starting download from %s to %s (%s bytes)", url, path, r.headers.get("Content-Length")
        )
        with open(path, "wb") as f:
            for chunk in r.iter_content(DOWNLOAD_CHUNK_SIZE):
                if chunk:  # filter out keep-alive new chunks
                    f.write(chunk)
                    total += len(chunk)
            f.flush()
            os.fsync(f.fileno())
        LOG.debug("Done downloading %s, total bytes %d", path, total)
        return total
    except requests.exceptions.Timeout as e:
        # covers both ConnectTimeout and ReadTimeout
        raise TimeoutError(f"Timeout ({timeout}) reached on download: {url} - {e}") from e
    except requests.exceptions.RequestException as e:
        raise DownloadError(f"Failed to download {url}: {e}") from e
    except OSError as e:
        raise DownloadError(f"Unable to write download of {url} to {path}: {e}") from e
    finally:
        if r is not None:
            r.close()
        s.close()
