"""Persisted record storage."""
import json
import logging
import os
from typing import Any
from typing import Dict
from typing import Optional

from certgen import errors
from certgen import util

logger = logging.getLogger(__name__)


class RecordStorage:
    """Singleton records kept in a JSON file.

    Each record (e.g. ``challenge`` or ``settings``) is a mapping of
    string fields. A record is created the first time one of its fields
    is written, so reading and writing follow first-or-create semantics.

    """

    def __init__(self, path: str) -> None:
        """Initializes RecordStorage.

        :param str path: JSON file holding the records

        """
        self._storagepath = path
        self._data: Optional[Dict[str, Dict[str, Any]]] = None

    @property
    def path(self) -> str:
        """Location of the JSON file."""
        return self._storagepath

    def _load(self) -> Dict[str, Dict[str, Any]]:
        """Reads the records from disk, once.

        :raises .errors.StorageError: when unable to open or read the file
        """
        if self._data is not None:
            return self._data
        filedata = ""
        try:
            with open(self._storagepath, 'r') as fh:
                filedata = fh.read()
        except OSError as e:
            if os.path.isfile(self._storagepath):
                # Only error out if file exists, but cannot be read
                errmsg = "Could not read record storage file: {0} : {1}".format(
                    self._storagepath, str(e))
                logger.error(errmsg)
                raise errors.StorageError(errmsg)
        data: Dict[str, Dict[str, Any]] = {}
        if filedata:
            try:
                data = json.loads(filedata)
            except ValueError:
                errmsg = "Record storage file {0} is corrupted.".format(self._storagepath)
                logger.error(errmsg)
                raise errors.StorageError(errmsg)
            # records are objects of fields, inside one top-level object
            if not isinstance(data, dict) or not all(
                    isinstance(record, dict) for record in data.values()):
                errmsg = "Record storage file {0} does not hold records.".format(
                    self._storagepath)
                logger.error(errmsg)
                raise errors.StorageError(errmsg)
        else:
            logger.debug("Record storage file %s was empty, no values loaded",
                         self._storagepath)
        self._data = data
        return data

    def fetch(self, record: str, field: str) -> Optional[Any]:
        """Get a field of a record.

        :returns: the stored value, or ``None`` if the record or the
            field does not exist yet
        """
        return self._load().get(record, {}).get(field)

    def put(self, record: str, field: str, value: Any) -> None:
        """Set a field of a record, creating the record if needed.

        The change is only in memory until `save` is called.
        """
        self._load().setdefault(record, {})[field] = value

    def save(self) -> None:
        """Saves the records to disk, readable by the owner only.

        :raises .errors.StorageError: when unable to serialize the data
            or write it to the filesystem
        """
        data = self._load()
        try:
            serialized = json.dumps(data)
        except TypeError as e:
            errmsg = "Could not serialize records: {0}".format(str(e))
            logger.error(errmsg)
            raise errors.StorageError(errmsg)
        try:
            util.make_or_verify_dir(os.path.dirname(self._storagepath))
            with util.safe_open(self._storagepath, 'w', chmod=0o600) as fh:
                fh.write(serialized)
        except OSError as e:
            errmsg = "Could not write records to file {0} : {1}".format(
                self._storagepath, str(e))
            logger.error(errmsg)
            raise errors.StorageError(errmsg)

    def reload(self) -> None:
        """Forget cached records so the next read hits the disk."""
        self._data = None
